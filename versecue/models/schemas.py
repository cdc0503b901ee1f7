"""Data schemas for VerseCue."""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime, UTC
from enum import Enum
from typing import Optional
import uuid


def format_reference(book: str, chapter: int,
                     verse_start: Optional[int] = None,
                     verse_end: Optional[int] = None) -> str:
    """Canonical display string: "Book Chapter[:Verse[-Verse]]"."""
    ref = f"{book} {chapter}"
    if verse_start is not None:
        ref += f":{verse_start}"
        if verse_end is not None and verse_end != verse_start:
            ref += f"-{verse_end}"
    return ref


# --- Scripture Reference ---

class ScriptureReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    book: str  # canonical catalog name, "1 Corinthians"
    chapter: int = Field(ge=1)
    verse_start: Optional[int] = Field(default=None, ge=1)
    verse_end: Optional[int] = Field(default=None, ge=1)
    reference: str = ""  # "1 Corinthians 13:4-7"

    @model_validator(mode="before")
    @classmethod
    def _derive_reference(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            vs, ve = data.get("verse_start"), data.get("verse_end")
            if ve is not None and vs is None:
                raise ValueError("verse_end requires verse_start")
            if vs is not None and ve is not None:
                if ve < vs:
                    raise ValueError("verse_end must not precede verse_start")
                if ve == vs:
                    data["verse_end"] = None
            data["reference"] = format_reference(
                data.get("book", ""), data.get("chapter", 0),
                data.get("verse_start"), data.get("verse_end"),
            )
        return data


# --- Detection ---

class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DetectionType(str, Enum):
    DETERMINISTIC = "deterministic"
    CONTEXTUAL = "contextual"


class DetectionResult(BaseModel):
    """One emitted detection. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    reference: ScriptureReference
    matched_text: str
    confidence_score: float = Field(ge=0.0, le=1.0)
    confidence_level: ConfidenceLevel
    detection_type: DetectionType
    reasoning: Optional[str] = None  # contextual detections only
    detected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    verse_text: Optional[str] = None
    translation: Optional[str] = None


class ClassifiedReference(BaseModel):
    """A validated reference returned by the contextual classifier."""
    reference: ScriptureReference
    confidence: float
    reasoning: str = ""


class DetectOptions(BaseModel):
    context: Optional[str] = None
    skip_fallback: bool = False
    fetch_verse_text: bool = False


class VerseText(BaseModel):
    reference: str
    text: str
    translation: Optional[str] = None


# --- Transcript ---

class TranscriptSegment(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    is_final: bool = True
    confidence: float = 0.0


class RecognizerResult(BaseModel):
    """One alternative from a recognizer result event."""
    text: str
    is_final: bool = False
    confidence: float = 0.0


class InputDevice(BaseModel):
    id: str
    label: str = ""


# --- REST ---

class DetectRequest(BaseModel):
    text: str
    context: Optional[str] = None
    skip_fallback: bool = False
    fetch_verse_text: bool = False


class DetectResponse(BaseModel):
    detections: list[DetectionResult] = []
    count: int = 0


# --- WebSocket Messages ---

class WSControlMessage(BaseModel):
    """Client -> Server: control commands."""
    type: str  # "start", "pause", "resume", "stop", "new_session", "devices", "result", ...
    data: dict = {}


class WSState(BaseModel):
    """Server -> Client: capture session state changed."""
    type: str = "state"
    state: str
    device_id: Optional[str] = None
    level: float = 0.0
    last_error: Optional[str] = None


class WSDetections(BaseModel):
    """Server -> Client: detections for one final segment."""
    type: str = "detections"
    segment_id: str
    detections: list[DetectionResult] = []
