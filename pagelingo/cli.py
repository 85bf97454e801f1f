"""Command line interface for pagelingo."""

from __future__ import annotations

import argparse
import asyncio
import logging
import pathlib
import re
import sys
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .cache import TranslationCache
from .configuration import PageLingoConfig, get_settings, validate_provider_settings
from .document import PageDocument
from .engine import create_engine
from .errors import (
    LanguagesUnavailable,
    OverwriteRefusedError,
    PageLingoError,
    TranslationProviderConfigurationError,
)
from .providers import build_provider
from .relay import RelayClient, TranslationCollaborator, TranslationRelay


@dataclass
class TranslationSummary:
    """Report returned after translating an HTML file."""

    input_path: pathlib.Path
    output_path: pathlib.Path
    total_nodes: int
    provider_name: str
    target_language: str
    source_language: str
    elapsed_seconds: float
    error_messages: List[str] = field(default_factory=list)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagelingo",
        description="Translate the visible text of HTML pages, or serve the translation relay.",
    )
    parser.add_argument(
        "input_file",
        nargs="?",
        help="Path to the .html file to translate.",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        help="Destination language code (for example en).",
    )
    parser.add_argument(
        "-s",
        "--source-language",
        help="Language the page is written in (default: SOURCE_LANGUAGE setting).",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target language code.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider identifier (default: TRANSLATION_PROVIDER setting).",
    )
    parser.add_argument(
        "-m",
        "--model",
        help="Provider-specific model identifier.",
    )
    parser.add_argument(
        "--api-base",
        help="Use a remote relay at this URL instead of an in-process provider.",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    parser.add_argument(
        "--list-languages",
        action="store_true",
        help="Print the languages offered by the relay and exit.",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the HTTP translation relay.",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Relay bind address.")
    parser.add_argument("--port", type=int, default=3000, help="Relay port (default: 3000).")
    return parser


def sanitise_language_for_filename(language: str) -> str:
    """Generate a filesystem-friendly suffix from a language code."""

    collapsed = re.sub(r"\s+", "-", language.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-]+", "", ascii_only)
    return cleaned or "translated"


def derive_output_path(input_path: pathlib.Path, language: str) -> pathlib.Path:
    addition = sanitise_language_for_filename(language)
    return input_path.with_name(f"{input_path.stem}_{addition}{input_path.suffix}")


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError("Input file not found. Please provide a readable .html file.")
    if not input_path.is_file():
        raise PageLingoError("Input path must be a file.")
    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input page. Refusing to overwrite the source file."
        )
    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists; rename it or use the overwrite flag."
        )


def build_collaborator(
    settings: PageLingoConfig,
    *,
    provider: str | None,
    model: str | None,
    api_base: str | None,
    provider_debug: bool,
) -> TranslationCollaborator:
    """Return a remote relay client or an in-process relay."""

    if api_base:
        return RelayClient(api_base, timeout=settings.RELAY_TIMEOUT_SECONDS)
    validate_provider_settings(settings, provider)
    backend = build_provider(provider, settings, debug=provider_debug)
    return TranslationRelay(backend, model=model or settings.OPENAI_MODEL)


async def translate_file(
    *,
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    target_language: str,
    source_language: str,
    collaborator: TranslationCollaborator,
    settings: PageLingoConfig,
) -> tuple[bool, List[str], int]:
    """Translate one HTML file headlessly; returns (ok, alerts, node count)."""

    document = PageDocument.from_path(input_path)
    alerts: List[str] = []
    engine = create_engine(
        document,
        collaborator,
        widget_id=settings.WIDGET_ID,
        source_language=source_language,
        debounce_seconds=settings.debounce_seconds,
        cache=TranslationCache(settings.CACHE_MAX_ENTRIES),
        notifier=alerts.append,
        inject_ui=False,
    )
    try:
        await engine.start()
        outcome = await engine.select_language(target_language)
    finally:
        engine.destroy()
        await collaborator.aclose()

    messages = alerts + [
        f"{record.message} ({record.details})" if record.details else record.message
        for record in engine.errors
    ]
    if outcome is None and target_language != source_language:
        return False, messages, 0
    document.save(output_path)
    return True, messages, outcome.total_nodes if outcome else 0


def execute_translation(
    *,
    input_file: str,
    output_file: str | None,
    target_language: str,
    source_language: str | None,
    provider: str | None,
    model: str | None,
    api_base: str | None,
    force_overwrite: bool,
    provider_debug: bool,
    settings: PageLingoConfig,
) -> tuple[int, TranslationSummary | None, str | None]:
    """Execute a translation run and return the exit code, summary, and message."""

    input_path = pathlib.Path(input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(input_path, target_language)
    )
    source = source_language or settings.SOURCE_LANGUAGE

    try:
        validate_paths(input_path, output_path, force_overwrite=force_overwrite)
    except (FileNotFoundError, PageLingoError) as exc:
        return 1, None, str(exc)

    output_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        collaborator = build_collaborator(
            settings,
            provider=provider,
            model=model,
            api_base=api_base,
            provider_debug=provider_debug,
        )
        started = time.monotonic()
        ok, messages, total_nodes = asyncio.run(
            translate_file(
                input_path=input_path,
                output_path=output_path,
                target_language=target_language,
                source_language=source,
                collaborator=collaborator,
                settings=settings,
            )
        )
        elapsed = time.monotonic() - started
    except TranslationProviderConfigurationError as exc:
        return 1, None, str(exc)
    except PageLingoError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    if not ok:
        return 1, None, "\n".join(messages) or "Translation failed."

    summary = TranslationSummary(
        input_path=input_path,
        output_path=output_path,
        total_nodes=total_nodes,
        provider_name="relay" if api_base else (provider or settings.TRANSLATION_PROVIDER),
        target_language=target_language,
        source_language=source,
        elapsed_seconds=elapsed,
        error_messages=messages,
    )
    return 0, summary, None


def print_summary(summary: TranslationSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nTranslation complete.")
    print(f"  Input file:      {summary.input_path}")
    print(f"  Output file:     {summary.output_path}")
    print(f"  Text nodes:      {summary.total_nodes}")
    print(f"  Provider:        {summary.provider_name}")
    print(f"  Source language: {summary.source_language}")
    print(f"  Target language: {summary.target_language}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.error_messages:
        print("  Notes:")
        for message in summary.error_messages:
            print(f"    - {message}")


async def _list_languages(collaborator: TranslationCollaborator) -> List[str]:
    try:
        languages = await collaborator.list_supported_languages()
    finally:
        await collaborator.aclose()
    return [f"{language.code}\t{language.name}" for language in languages]


def serve(settings: PageLingoConfig, *, provider: str | None, host: str, port: int, provider_debug: bool) -> int:
    import uvicorn

    from .server import create_app

    validate_provider_settings(settings, provider)
    relay = TranslationRelay(
        build_provider(provider, settings, debug=provider_debug),
        model=settings.OPENAI_MODEL,
    )
    app = create_app(relay, allowed_origins=settings.allowed_origins)
    uvicorn.run(app, host=host, port=port)
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(
        level=logging.DEBUG if args.debug_provider else logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = get_settings()
    except TranslationProviderConfigurationError as exc:
        print(exc)
        return 1
    provider_debug = bool(args.debug_provider or settings.PAGELINGO_PROVIDER_DEBUG)

    if args.serve:
        try:
            return serve(
                settings,
                provider=args.provider,
                host=args.host,
                port=args.port,
                provider_debug=provider_debug,
            )
        except TranslationProviderConfigurationError as exc:
            print(exc)
            return 1

    if args.list_languages:
        try:
            collaborator = build_collaborator(
                settings,
                provider=args.provider,
                model=args.model,
                api_base=args.api_base,
                provider_debug=provider_debug,
            )
            lines = asyncio.run(_list_languages(collaborator))
        except (TranslationProviderConfigurationError, LanguagesUnavailable) as exc:
            print(exc)
            return 1
        print("\n".join(lines))
        return 0

    if args.input_file is None:
        parser.error("the following arguments are required: input_file")
    if not args.target_language:
        parser.error("the following arguments are required: -t/--target-language")

    exit_code, summary, message = execute_translation(
        input_file=args.input_file,
        output_file=args.output,
        target_language=args.target_language,
        source_language=args.source_language,
        provider=args.provider,
        model=args.model,
        api_base=args.api_base,
        force_overwrite=args.force,
        provider_debug=provider_debug,
        settings=settings,
    )

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
