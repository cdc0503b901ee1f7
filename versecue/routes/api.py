"""REST API routes: detection, cooldown reset, verse lookup, book catalog, health."""

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from versecue.errors import EnrichmentUnavailable, ValidationError
from versecue.models.schemas import DetectOptions, DetectRequest, DetectResponse
from versecue.services.catalog import BIBLE_BOOKS
from versecue.services.reference_parser import require_reference
import versecue.routes._state as _state

logger = logging.getLogger("versecue.api")


# --- Detection Routes ---

detect_router = APIRouter(prefix="/api/detect", tags=["detect"])


def _require_detector():
    if _state._detector is None:
        raise HTTPException(503, "Detector not initialized")
    return _state._detector


@detect_router.post("", response_model=DetectResponse)
async def detect(req: DetectRequest):
    """Run the full detection pipeline on one transcript segment."""
    detector = _require_detector()
    if not req.text.strip():
        raise HTTPException(400, "Text is required")
    detections = await detector.detect(req.text, DetectOptions(
        context=req.context,
        skip_fallback=req.skip_fallback,
        fetch_verse_text=req.fetch_verse_text,
    ))
    return DetectResponse(detections=detections, count=len(detections))


class ContextualRequest(BaseModel):
    transcript: str
    context: str | None = None


@detect_router.post("/contextual")
async def detect_contextual(req: ContextualRequest):
    """Ask the contextual classifier directly (no pre-filter, no cooldown)."""
    if _state._classifier is None:
        raise HTTPException(503, "Contextual classifier not initialized")
    references = await _state._classifier.classify(req.transcript, req.context)
    return {
        "references": [
            {
                **r.reference.model_dump(),
                "confidence": r.confidence,
                "reasoning": r.reasoning,
            }
            for r in references
        ],
        "count": len(references),
    }


@detect_router.delete("/cooldowns")
async def clear_cooldowns():
    detector = _require_detector()
    cleared = len(detector.cooldowns)
    detector.clear_cooldowns()
    return {"cleared": cleared}


# --- Verse Routes ---

verse_router = APIRouter(prefix="/api/verses", tags=["verses"])


@verse_router.get("/{reference}")
async def get_verse(reference: str):
    """Look up verse text for a canonical reference ("John 3:16")."""
    try:
        ref = require_reference(reference)
    except ValidationError as e:
        raise HTTPException(400, str(e))
    if _state._verse_lookup is None:
        raise HTTPException(503, "Verse lookup not initialized")
    try:
        verse = await _state._verse_lookup.lookup(ref.reference)
    except EnrichmentUnavailable as e:
        logger.warning(str(e))
        raise HTTPException(502, str(e))
    if verse is None:
        raise HTTPException(404, f"No text found for {ref.reference}")
    return verse.model_dump()


# --- Catalog / System Routes ---

system_router = APIRouter(prefix="/api", tags=["system"])


@system_router.get("/books")
async def list_books():
    return [
        {
            "name": b.name,
            "testament": b.testament,
            "chapters": b.chapter_count,
            "aliases": list(b.aliases),
        }
        for b in BIBLE_BOOKS
    ]


@system_router.get("/health")
async def health():
    if _state._detector is None:
        return {"status": "starting"}
    result = {
        "status": "ok",
        "detector": _state._detector.metrics,
    }
    if _state._classifier is not None:
        result["classifier"] = _state._classifier.metrics
    return result
