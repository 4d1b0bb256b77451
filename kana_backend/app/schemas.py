"""Pydantic schemas for request/response validation."""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict

from .features import Point, StrokeDescriptor
from .learner import CharacterStats, LearnedPattern, LearningSession
from .matcher import Candidate
from .settings import DEFAULT_CANVAS_SIZE


class StrokeInput(BaseModel):
    """One pointer path from input-down to input-up, in device pixels.

    ``image_data`` is the client-rendered canvas, kept when a tap commits.
    """
    points: List[Point] = Field(..., min_length=1)
    canvas_width: float = Field(DEFAULT_CANVAS_SIZE, gt=0)
    canvas_height: float = Field(DEFAULT_CANVAS_SIZE, gt=0)
    image_data: Optional[str] = None


class MatchRequest(BaseModel):
    strokes: List[StrokeDescriptor]


class CandidatesResponse(BaseModel):
    candidates: List[Candidate]


class ReferenceEntryResponse(BaseModel):
    character: str
    total_strokes: int
    strokes: List[StrokeDescriptor]


class CommitResponse(BaseModel):
    """A character finalized on a canvas."""
    session_id: str
    character: str
    stroke_count: int
    learned: bool
    gallery_id: int


class CanvasStateResponse(BaseModel):
    canvas_id: str
    state: str
    session_id: Optional[str] = None
    stroke_count: int
    candidates: List[Candidate]


class StrokeResponse(BaseModel):
    """Result of submitting a pointer path.

    A tap finalizes the character instead of adding a stroke, so either
    ``descriptor`` or ``committed`` is set, or neither for a tap on an
    empty canvas.
    """
    canvas: CanvasStateResponse
    descriptor: Optional[StrokeDescriptor] = None
    committed: Optional[CommitResponse] = None


class ConfirmRequest(BaseModel):
    character: Optional[str] = Field(None, min_length=1)
    image_data: Optional[str] = None


class FeedbackRequestResponse(BaseModel):
    session_id: str
    suggested_character: str
    candidates: List[Candidate]


class FeedbackResolveRequest(BaseModel):
    session_id: str
    character: str = Field(..., min_length=1)
    image_data: Optional[str] = None


class AddPatternRequest(BaseModel):
    character: str = Field(..., min_length=1)
    strokes: List[StrokeDescriptor]
    confidence: float = 100


class LearningFeedbackRequest(BaseModel):
    session_id: str
    correct_character: str = Field(..., min_length=1)


class LearningFeedbackResponse(BaseModel):
    learned: bool


class LearningStatsResponse(BaseModel):
    characters: Dict[str, CharacterStats]


class PatternsResponse(BaseModel):
    character: str
    patterns: List[LearnedPattern]


class SessionsResponse(BaseModel):
    sessions: List[LearningSession]


class CommittedCharacterResponse(BaseModel):
    """Response schema for a gallery entry."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    canvas_id: Optional[str] = None
    session_id: str
    character: str
    image_data: Optional[str] = None
    ocr_text: Optional[str] = None
    created_ts_utc: str


class CommittedCharacterUpdate(BaseModel):
    ocr_text: str


class ClearedResponse(BaseModel):
    cleared: int
