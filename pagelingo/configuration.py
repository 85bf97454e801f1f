"""Layered configuration loader for pagelingo.

Sources, lowest precedence first: the user YAML file, a local
``config.yaml``, a ``.env`` file in the application directory and finally the
process environment. Only keys known to :class:`PageLingoConfig` are merged.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Sequence, Tuple

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import TranslationProviderConfigurationError

APP_NAME = "pagelingo"
CONFIG_FILENAME = "config.yaml"


class PageLingoConfig(BaseModel):
    """Schema describing all supported configuration options."""

    TRANSLATION_PROVIDER: Literal["openai", "azure_openai", "legacy_openai", "echo"] = Field(
        default="openai",
        description="Backend used by the translation relay.",
    )
    OPENAI_API_KEY: str | None = Field(default=None, repr=False)
    OPENAI_MODEL: str | None = Field(default=None)
    AZURE_OPENAI_API_KEY: str | None = Field(default=None, repr=False)
    AZURE_OPENAI_ENDPOINT: str | None = Field(default=None)
    AZURE_OPENAI_API_VERSION: str | None = Field(default=None)
    AZURE_OPENAI_DEPLOYMENT_NAME: str | None = Field(default=None)

    SOURCE_LANGUAGE: str = Field(default="ja", min_length=2)
    DEBOUNCE_MS: int = Field(default=500, ge=0)
    CACHE_MAX_ENTRIES: int | None = Field(default=256, ge=1)
    RELAY_API_BASE: str = Field(default="http://localhost:3000/api")
    RELAY_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)
    WIDGET_ID: str = Field(default="default")
    ALLOWED_ORIGINS: str = Field(default="http://localhost:3000")
    PAGELINGO_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    @classmethod
    def _normalise_provider(cls, data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("TRANSLATION_PROVIDER")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower().replace("-", "_")
                synonyms = {
                    "azure_open_ai": "azure_openai",
                    "azureopenai": "azure_openai",
                    "azure": "azure_openai",
                    "legacy": "legacy_openai",
                    "openai_legacy": "legacy_openai",
                    "mock": "echo",
                    "noop": "echo",
                }
                data["TRANSLATION_PROVIDER"] = synonyms.get(normalized, normalized)
            if data.get("CACHE_MAX_ENTRIES") in ("", "none", "None"):
                data["CACHE_MAX_ENTRIES"] = None
        return data

    @property
    def debounce_seconds(self) -> float:
        return self.DEBOUNCE_MS / 1000.0

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


def discover_file_paths(app_dir: Path) -> List[Tuple[Path, str]]:
    """Return existing YAML configuration files, lowest precedence first."""

    config_home = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    candidates = [
        (config_home / APP_NAME / CONFIG_FILENAME, "user"),
        (app_dir / CONFIG_FILENAME, "local"),
    ]
    return [(path, label) for path, label in candidates if path.is_file()]


def load_settings(app_dir: Path | None = None) -> PageLingoConfig:
    """Load and validate configuration without caching."""

    base_dir = app_dir or Path.cwd()
    allowed = set(PageLingoConfig.model_fields.keys())
    combined: Dict[str, Any] = {}
    sources: Dict[str, str] = {}

    def merge_values(values: Mapping[str, Any], *, source: str) -> None:
        for key, value in sorted(values.items()):
            if value is None or key not in allowed:
                continue
            combined[key] = value
            sources[key] = source

    for path, label in discover_file_paths(base_dir):
        merge_values(_read_yaml(path), source=f"{label}:{path}")

    dotenv_path = base_dir / ".env"
    if dotenv_path.exists():
        merge_values(dotenv_values(dotenv_path), source="env:.env")

    merge_values(
        {key: value for key, value in os.environ.items() if isinstance(value, str)},
        source="env:process",
    )

    try:
        return PageLingoConfig.model_validate(combined)
    except ValidationError as exc:
        raise TranslationProviderConfigurationError(
            _format_validation_errors(exc.errors(), sources)
        ) from exc


def _read_yaml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            parsed = yaml.safe_load(handle)
    except OSError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except yaml.YAMLError as exc:
        raise TranslationProviderConfigurationError(
            f"Invalid configuration file {path}: {exc}"
        ) from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, Mapping):
        raise TranslationProviderConfigurationError(
            f"Invalid configuration file {path}: expected a mapping at the root."
        )
    return parsed


def validate_provider_settings(settings: PageLingoConfig, provider: str | None = None) -> None:
    """Check that the credentials required by ``provider`` are present."""

    provider = (provider or settings.TRANSLATION_PROVIDER).strip().lower().replace("-", "_")
    errors: list[str] = []

    if provider in {"openai", "legacy_openai"}:
        if not settings.OPENAI_API_KEY:
            errors.append(
                f"OPENAI_API_KEY is required when TRANSLATION_PROVIDER is '{provider}'."
            )
    elif provider == "azure_openai":
        missing = [
            name
            for name, value in {
                "AZURE_OPENAI_API_KEY": settings.AZURE_OPENAI_API_KEY,
                "AZURE_OPENAI_ENDPOINT": settings.AZURE_OPENAI_ENDPOINT,
                "AZURE_OPENAI_API_VERSION": settings.AZURE_OPENAI_API_VERSION,
                "AZURE_OPENAI_DEPLOYMENT_NAME": settings.AZURE_OPENAI_DEPLOYMENT_NAME,
            }.items()
            if not value
        ]
        if missing:
            errors.append(
                "The following Azure OpenAI settings must be provided when "
                f"TRANSLATION_PROVIDER is 'azure_openai': {', '.join(missing)}."
            )

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _format_validation_errors(
    entries: Sequence[Mapping[str, Any]],
    sources: Mapping[str, str],
) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("loc") or ()
        location = ".".join(str(part) for part in path if part not in {None, ""})
        message = str(entry.get("msg") or "Invalid value")
        source = sources.get(str(path[0])) if path else None
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


@lru_cache(maxsize=1)
def get_settings(app_dir: Path | None = None) -> PageLingoConfig:
    """Return the validated configuration, loaded once per process."""

    return load_settings(app_dir=app_dir)
