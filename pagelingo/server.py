"""HTTP relay exposing the translation collaborator to browser widgets."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .errors import TranslationFailed
from .relay import TranslationRelay, is_blank

logger = logging.getLogger(__name__)


class TextTranslationRequest(BaseModel):
    texts: Optional[List[Any]] = None
    targetLanguage: Optional[str] = None
    sourceLanguage: Optional[str] = None


class DetectionRequest(BaseModel):
    text: Optional[Any] = None


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message},
    )


def build_router(relay: TranslationRelay) -> APIRouter:
    router = APIRouter()

    @router.get("/languages")
    async def list_languages():
        languages = await relay.list_supported_languages()
        return {"success": True, "languages": [language.to_dict() for language in languages]}

    @router.post("/text")
    async def translate_text(request: TextTranslationRequest):
        texts = request.texts
        if not texts:
            return _error(400, "Invalid texts", "No texts were provided for translation.")
        if not request.targetLanguage:
            return _error(400, "Invalid target language", "No target language was provided.")
        if request.targetLanguage not in relay.language_codes:
            return _error(
                400,
                "Invalid target language",
                f"Unsupported target language '{request.targetLanguage}'.",
            )

        # Non-string entries are passed through untouched, like blank ones.
        positions = [index for index, text in enumerate(texts) if not is_blank(text)]
        if not positions:
            return {"success": True, "translations": ["" for _ in texts]}

        try:
            translated = await relay.translate_batch(
                [texts[index] for index in positions],
                request.targetLanguage,
                request.sourceLanguage,
            )
        except TranslationFailed as exc:
            logger.error("Translation error: %s", exc)
            return _error(
                500,
                "Translation failed",
                "Translation failed. Please wait a moment and try again.",
            )

        results: List[Any] = list(texts)
        for index, value in zip(positions, translated):
            results[index] = value
        return {
            "success": True,
            "translations": results,
            "sourceLanguage": request.sourceLanguage or "auto",
            "targetLanguage": request.targetLanguage,
        }

    @router.post("/detect")
    async def detect_language(request: DetectionRequest):
        if is_blank(request.text):
            return _error(400, "Invalid text", "No text was provided for language detection.")
        try:
            detection = await relay.detect_language(request.text)
        except TranslationFailed as exc:
            logger.error("Language detection error: %s", exc)
            return _error(500, "Language detection failed", "Language detection failed.")
        return {
            "success": True,
            "language": detection.language,
            "confidence": detection.confidence,
        }

    return router


def create_app(relay: TranslationRelay, *, allowed_origins: Sequence[str] = ()) -> FastAPI:
    app = FastAPI(
        title="pagelingo relay",
        description="Translation relay for the page translation widget",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(build_router(relay), prefix="/api/translate", tags=["translate"])

    @app.get("/health")
    async def health_check():
        return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app
