"""Drawing session protocol.

Connects stroke input, live prediction and the confirmation step for one
character at a time::

    EMPTY --stroke--> DRAWING --confirm/tap--> CLOSED --stroke--> DRAWING
                         |                        ^
                  request_feedback                | resolve
                         v                        |
                 AWAITING_CONFIRMATION -----------+
                         |
                      cancel --> DRAWING

Feedback is requested through an explicit ``FeedbackRequest`` bound to the
session it was opened for; resolving it is the only way out of
AWAITING_CONFIRMATION other than cancelling.
"""
import logging
import secrets
import string
import threading
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel

from .features import Point, StrokeDescriptor, analyze_stroke
from .learner import CharacterLearningStore
from .matcher import Candidate
from .reference import CharacterEntry, all_characters

logger = logging.getLogger(__name__)

UNKNOWN_CHARACTER = "?"

_SESSION_ALPHABET = string.ascii_lowercase + string.digits


class ProtocolState(str, Enum):
    EMPTY = "empty"
    DRAWING = "drawing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CLOSED = "closed"


class ProtocolStateError(Exception):
    """An operation was attempted in a state that does not allow it."""


class StaleFeedbackError(ProtocolStateError):
    """A feedback request was resolved twice, after cancel, or for an old session."""


class CommitResult(BaseModel):
    """A finished character handed to the output consumer."""
    session_id: str
    character: str
    strokes: List[StrokeDescriptor]
    learned: bool = False


def default_session_id() -> str:
    suffix = "".join(secrets.choice(_SESSION_ALPHABET) for _ in range(9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


class FeedbackRequest:
    """One-shot continuation for a pending confirmation."""

    def __init__(
        self,
        protocol: "DrawingProtocol",
        session_id: str,
        suggested_character: str,
        candidates: List[Candidate],
    ) -> None:
        self._protocol = protocol
        self.session_id = session_id
        self.suggested_character = suggested_character
        self.candidates = candidates
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def resolve(self, chosen_character: str) -> CommitResult:
        """Close the character as ``chosen_character`` and learn from it."""
        with self._protocol.lock:
            self._check_live()
            self._done = True
            return self._protocol._close(
                chosen_character, learn=True, suggested_character=self.suggested_character
            )

    def cancel(self) -> None:
        """Abandon the request; the strokes stay in progress."""
        with self._protocol.lock:
            self._check_live()
            self._done = True
            self._protocol._cancel_feedback()

    def _check_live(self) -> None:
        if self._done:
            raise StaleFeedbackError(f"Feedback for {self.session_id} was already handled")
        if self._protocol.pending_feedback is not self:
            raise StaleFeedbackError(f"Feedback for {self.session_id} is no longer pending")


class DrawingProtocol:
    """State machine for the character currently being drawn.

    Every transition holds ``lock``; callers that read several fields at once
    may hold it too.
    """

    def __init__(
        self,
        store: CharacterLearningStore,
        entries: Optional[Sequence[CharacterEntry]] = None,
        session_id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self.store = store
        self.entries = tuple(entries) if entries is not None else all_characters()
        self._new_session_id = session_id_factory or default_session_id
        self.state = ProtocolState.EMPTY
        self.session_id: Optional[str] = None
        self._strokes: List[StrokeDescriptor] = []
        self._candidates: List[Candidate] = []
        self.pending_feedback: Optional[FeedbackRequest] = None
        self.lock = threading.RLock()

    @property
    def strokes(self) -> List[StrokeDescriptor]:
        with self.lock:
            return list(self._strokes)

    @property
    def candidates(self) -> List[Candidate]:
        with self.lock:
            return list(self._candidates)

    def add_stroke(
        self, start: Point, end: Point, canvas_width: float, canvas_height: float
    ) -> List[Candidate]:
        """Analyze a finished stroke and return the updated ranking."""
        descriptor = analyze_stroke(start, end, canvas_width, canvas_height)

        with self.lock:
            if self.state == ProtocolState.AWAITING_CONFIRMATION:
                raise ProtocolStateError("Strokes are frozen while awaiting confirmation")
            if self.state == ProtocolState.CLOSED:
                self._reset()

            self._strokes.append(descriptor)

            if self.session_id is None:
                self.session_id = self._new_session_id()
            self.state = ProtocolState.DRAWING

            self._candidates = self.store.match_with_learning(self._strokes, self.entries)
            logger.debug(
                "Stroke %d (%s/%s/%s) -> top %s",
                len(self._strokes),
                descriptor.direction.value,
                descriptor.length.value,
                descriptor.position.value,
                self._candidates[0].character if self._candidates else None,
            )
            return list(self._candidates)

    def tap(self) -> Optional[CommitResult]:
        """A click without drag finalizes the current character, if any."""
        with self.lock:
            if self.state != ProtocolState.DRAWING:
                return None
            return self.confirm()

    def confirm(self, confirmed_character: Optional[str] = None) -> Optional[CommitResult]:
        """Finalize the drawing as the top candidate or a caller-confirmed label.

        Only a caller-confirmed label reaches the learning store.
        """
        with self.lock:
            if self.state == ProtocolState.AWAITING_CONFIRMATION:
                raise ProtocolStateError("Resolve or cancel the pending feedback first")
            if self.state != ProtocolState.DRAWING:
                return None

            suggested = self._best_character()
            if confirmed_character:
                return self._close(confirmed_character, learn=True, suggested_character=suggested)
            return self._close(suggested, learn=False, suggested_character=suggested)

    def request_feedback(self) -> Optional[FeedbackRequest]:
        """Freeze the strokes and hand out a continuation for this session."""
        with self.lock:
            if self.state == ProtocolState.AWAITING_CONFIRMATION:
                raise ProtocolStateError("Feedback is already pending")
            if self.state != ProtocolState.DRAWING:
                return None

            request = FeedbackRequest(
                protocol=self,
                session_id=self.session_id,
                suggested_character=self._best_character(),
                candidates=list(self._candidates),
            )
            self.pending_feedback = request
            self.state = ProtocolState.AWAITING_CONFIRMATION
            return request

    def clear(self) -> None:
        """Discard the in-progress character without recording anything."""
        with self.lock:
            if self.pending_feedback is not None:
                self.pending_feedback._done = True
            self._reset()

    def _best_character(self) -> str:
        if self._candidates and self._candidates[0].confidence > 0:
            return self._candidates[0].character
        return UNKNOWN_CHARACTER

    def _close(self, character: str, learn: bool, suggested_character: str) -> CommitResult:
        session_id = self.session_id
        strokes = list(self._strokes)

        # The session must exist before feedback can find it.
        self.store.record_session(session_id, strokes, suggested_character)
        learned = self.store.learn_from_feedback(session_id, character) if learn else False

        result = CommitResult(
            session_id=session_id, character=character, strokes=strokes, learned=learned
        )
        self._strokes = []
        self._candidates = []
        self.session_id = None
        self.pending_feedback = None
        self.state = ProtocolState.CLOSED
        logger.info(
            "Committed %s (suggested %s, session %s, learned=%s)",
            character, suggested_character, session_id, learned,
        )
        return result

    def _cancel_feedback(self) -> None:
        self.pending_feedback = None
        self.state = ProtocolState.DRAWING

    def _reset(self) -> None:
        self._strokes = []
        self._candidates = []
        self.session_id = None
        self.pending_feedback = None
        self.state = ProtocolState.EMPTY


class CanvasRegistry:
    """One ``DrawingProtocol`` per canvas, all sharing one learning store."""

    def __init__(self, store: CharacterLearningStore) -> None:
        self.store = store
        self._canvases: Dict[str, DrawingProtocol] = {}
        self._lock = threading.Lock()

    def get(self, canvas_id: str) -> DrawingProtocol:
        with self._lock:
            protocol = self._canvases.get(canvas_id)
            if protocol is None:
                protocol = DrawingProtocol(self.store)
                self._canvases[canvas_id] = protocol
            return protocol

    def peek(self, canvas_id: str) -> Optional[DrawingProtocol]:
        with self._lock:
            return self._canvases.get(canvas_id)

    def discard(self, canvas_id: str) -> None:
        with self._lock:
            self._canvases.pop(canvas_id, None)
