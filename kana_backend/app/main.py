"""FastAPI application for hiragana stroke recognition and learning."""
import os
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from .db import SessionLocal, ensure_schema, get_db
from .features import analyze_path, is_tap
from .learner import CharacterLearningStore
from .models import CommittedCharacter
from .protocol import (
    CanvasRegistry,
    CommitResult,
    DrawingProtocol,
    ProtocolStateError,
)
from .reference import all_characters
from .schemas import (
    AddPatternRequest,
    CandidatesResponse,
    CanvasStateResponse,
    ClearedResponse,
    CommitResponse,
    CommittedCharacterResponse,
    CommittedCharacterUpdate,
    ConfirmRequest,
    FeedbackRequestResponse,
    FeedbackResolveRequest,
    LearningFeedbackRequest,
    LearningFeedbackResponse,
    LearningStatsResponse,
    MatchRequest,
    PatternsResponse,
    ReferenceEntryResponse,
    SessionsResponse,
    StrokeInput,
    StrokeResponse,
)
from .settings import MOVE_THRESHOLD_PX
from .storage import SqlKeyValueStorage

# Create tables on startup
ensure_schema()

app = FastAPI(title="Hiragana Stroke Recognizer API", version="0.1.0")

# CORS configuration
_allowed_origins_env = os.getenv("ALLOWED_ORIGINS")
if _allowed_origins_env:
    allowed_origins = [origin.strip() for origin in _allowed_origins_env.split(",")]
else:
    allowed_origins = ["http://localhost:8501"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_learning_store(request: Request) -> CharacterLearningStore:
    """Dependency that provides the application's learning store.

    Created on first use and kept on ``app.state`` for the process lifetime.
    """
    store = getattr(request.app.state, "learning_store", None)
    if store is None:
        store = CharacterLearningStore(SqlKeyValueStorage(SessionLocal))
        request.app.state.learning_store = store
    return store


def get_canvases(
    request: Request,
    store: CharacterLearningStore = Depends(get_learning_store),
) -> CanvasRegistry:
    """Dependency that provides the canvas registry bound to the current store."""
    registry = getattr(request.app.state, "canvases", None)
    if registry is None or registry.store is not store:
        registry = CanvasRegistry(store)
        request.app.state.canvases = registry
    return registry


def _canvas_state(canvas_id: str, protocol: DrawingProtocol) -> CanvasStateResponse:
    return CanvasStateResponse(
        canvas_id=canvas_id,
        state=protocol.state.value,
        session_id=protocol.session_id,
        stroke_count=len(protocol.strokes),
        candidates=protocol.candidates,
    )


def _store_commit(
    db: Session,
    canvas_id: str,
    result: CommitResult,
    image_data: Optional[str] = None,
) -> CommitResponse:
    """Add a finalized character to the gallery."""
    entry = CommittedCharacter(
        canvas_id=canvas_id,
        session_id=result.session_id,
        character=result.character,
        image_data=image_data,
        created_ts_utc=datetime.now(timezone.utc).isoformat(),
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)

    return CommitResponse(
        session_id=result.session_id,
        character=result.character,
        stroke_count=len(result.strokes),
        learned=result.learned,
        gallery_id=entry.id,
    )


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/reference", response_model=List[ReferenceEntryResponse])
def get_reference():
    """List the reference stroke table."""
    return [
        ReferenceEntryResponse(
            character=entry.character,
            total_strokes=entry.total_strokes,
            strokes=list(entry.strokes),
        )
        for entry in all_characters()
    ]


@app.post("/strokes/analyze")
def analyze(body: StrokeInput):
    """Describe one pointer path without touching any canvas."""
    if is_tap(body.points, MOVE_THRESHOLD_PX):
        raise HTTPException(status_code=422, detail="Pointer path is a tap, not a stroke")
    descriptor = analyze_path(body.points, body.canvas_width, body.canvas_height)
    return descriptor.model_dump(mode="json", by_alias=True)


@app.post("/match", response_model=CandidatesResponse)
def match(body: MatchRequest, store: CharacterLearningStore = Depends(get_learning_store)):
    """Rank characters for a descriptor sequence, learned patterns included."""
    return CandidatesResponse(candidates=store.match_with_learning(body.strokes, all_characters()))


# Canvas Endpoints

@app.get("/canvases/{canvas_id}", response_model=CanvasStateResponse)
def get_canvas(canvas_id: str, canvases: CanvasRegistry = Depends(get_canvases)):
    """Current protocol state of a canvas."""
    protocol = canvases.peek(canvas_id)
    if protocol is None:
        raise HTTPException(status_code=404, detail="Unknown canvas")
    with protocol.lock:
        return _canvas_state(canvas_id, protocol)


@app.post("/canvases/{canvas_id}/strokes", response_model=StrokeResponse)
def submit_stroke(
    canvas_id: str,
    body: StrokeInput,
    canvases: CanvasRegistry = Depends(get_canvases),
    db: Session = Depends(get_db),
):
    """Submit a pointer path. A drag adds a stroke; a tap finalizes the character."""
    protocol = canvases.get(canvas_id)

    with protocol.lock:
        if is_tap(body.points, MOVE_THRESHOLD_PX):
            result = protocol.tap()
            committed = _store_commit(db, canvas_id, result, body.image_data) if result else None
            return StrokeResponse(canvas=_canvas_state(canvas_id, protocol), committed=committed)

        start, end = body.points[0], body.points[-1]
        try:
            protocol.add_stroke(start, end, body.canvas_width, body.canvas_height)
        except ProtocolStateError as e:
            raise HTTPException(status_code=409, detail=str(e))

        return StrokeResponse(
            canvas=_canvas_state(canvas_id, protocol),
            descriptor=protocol.strokes[-1],
        )


@app.post("/canvases/{canvas_id}/confirm", response_model=CommitResponse)
def confirm_canvas(
    canvas_id: str,
    body: ConfirmRequest,
    canvases: CanvasRegistry = Depends(get_canvases),
    db: Session = Depends(get_db),
):
    """Finalize the character, optionally with a caller-confirmed label."""
    protocol = canvases.get(canvas_id)
    try:
        result = protocol.confirm(body.character)
    except ProtocolStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if result is None:
        raise HTTPException(status_code=409, detail="Nothing drawn on canvas")
    return _store_commit(db, canvas_id, result, body.image_data)


@app.post("/canvases/{canvas_id}/feedback-request", response_model=FeedbackRequestResponse)
def open_feedback(canvas_id: str, canvases: CanvasRegistry = Depends(get_canvases)):
    """Freeze the canvas and return the suggestion to confirm or correct."""
    protocol = canvases.get(canvas_id)
    try:
        request = protocol.request_feedback()
    except ProtocolStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if request is None:
        raise HTTPException(status_code=409, detail="Nothing drawn on canvas")
    return FeedbackRequestResponse(
        session_id=request.session_id,
        suggested_character=request.suggested_character,
        candidates=request.candidates,
    )


@app.post("/canvases/{canvas_id}/feedback", response_model=CommitResponse)
def resolve_feedback(
    canvas_id: str,
    body: FeedbackResolveRequest,
    canvases: CanvasRegistry = Depends(get_canvases),
    db: Session = Depends(get_db),
):
    """Resolve the pending request with the chosen character and learn from it."""
    protocol = canvases.get(canvas_id)

    with protocol.lock:
        request = protocol.pending_feedback
        if request is None or request.session_id != body.session_id:
            raise HTTPException(status_code=409, detail="No pending feedback for this session")

        try:
            result = request.resolve(body.character)
        except ProtocolStateError as e:
            raise HTTPException(status_code=409, detail=str(e))

    return _store_commit(db, canvas_id, result, body.image_data)


@app.delete("/canvases/{canvas_id}/feedback", response_model=CanvasStateResponse)
def cancel_feedback(canvas_id: str, canvases: CanvasRegistry = Depends(get_canvases)):
    """Abandon the pending request and keep drawing."""
    protocol = canvases.get(canvas_id)

    with protocol.lock:
        request = protocol.pending_feedback
        if request is None:
            raise HTTPException(status_code=409, detail="No pending feedback")
        request.cancel()
        return _canvas_state(canvas_id, protocol)


@app.post("/canvases/{canvas_id}/clear", response_model=CanvasStateResponse)
def clear_canvas(canvas_id: str, canvases: CanvasRegistry = Depends(get_canvases)):
    """Discard the in-progress character."""
    protocol = canvases.get(canvas_id)

    with protocol.lock:
        protocol.clear()
        return _canvas_state(canvas_id, protocol)


# Learning Endpoints

@app.post("/learning/patterns", response_model=PatternsResponse)
def add_pattern(body: AddPatternRequest, store: CharacterLearningStore = Depends(get_learning_store)):
    """Teach a stroke sequence for a character directly."""
    store.add_learning_data(body.character, body.strokes, body.confidence)
    return PatternsResponse(character=body.character, patterns=store.patterns_for(body.character))


@app.get("/learning/patterns/{character}", response_model=PatternsResponse)
def get_patterns(character: str, store: CharacterLearningStore = Depends(get_learning_store)):
    """Learned patterns for one character (empty if none)."""
    return PatternsResponse(character=character, patterns=store.patterns_for(character))


@app.post("/learning/feedback", response_model=LearningFeedbackResponse)
def learning_feedback(
    body: LearningFeedbackRequest,
    store: CharacterLearningStore = Depends(get_learning_store),
):
    """Correct a recorded session. Unknown sessions are ignored."""
    learned = store.learn_from_feedback(body.session_id, body.correct_character)
    return LearningFeedbackResponse(learned=learned)


@app.get("/learning/stats", response_model=LearningStatsResponse)
def learning_stats(store: CharacterLearningStore = Depends(get_learning_store)):
    """Pattern count and total frequency per learned character."""
    return LearningStatsResponse(characters=store.get_stats())


@app.get("/learning/sessions", response_model=SessionsResponse)
def learning_sessions(store: CharacterLearningStore = Depends(get_learning_store)):
    """Recent sessions, oldest first."""
    return SessionsResponse(sessions=store.sessions)


@app.post("/learning/reset", response_model=LearningStatsResponse)
def reset_learning(store: CharacterLearningStore = Depends(get_learning_store)):
    """Erase every learned pattern and session. Irreversible."""
    store.reset()
    return LearningStatsResponse(characters=store.get_stats())


# Gallery Endpoints

@app.get("/characters", response_model=List[CommittedCharacterResponse])
def list_characters(db: Session = Depends(get_db)):
    """Committed characters, oldest first."""
    return db.query(CommittedCharacter).order_by(CommittedCharacter.id).all()


@app.patch("/characters/{character_id}", response_model=CommittedCharacterResponse)
def update_character(
    character_id: int,
    body: CommittedCharacterUpdate,
    db: Session = Depends(get_db),
):
    """Attach a recognized text label to a gallery entry."""
    entry = db.query(CommittedCharacter).filter(CommittedCharacter.id == character_id).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Character not found")
    entry.ocr_text = body.ocr_text
    db.commit()
    db.refresh(entry)
    return entry


@app.delete("/characters", response_model=ClearedResponse)
def clear_characters(db: Session = Depends(get_db)):
    """Remove every gallery entry."""
    cleared = db.query(CommittedCharacter).delete()
    db.commit()
    return ClearedResponse(cleared=cleared)
