"""Adaptive learning store for user-taught stroke patterns.

The store owns every learned pattern and the recent session ring, merges
learned-pattern scores into the base matcher ranking, and persists a JSON
snapshot through a ``KeyValueStorage`` after each mutation.
"""
import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .features import StrokeDescriptor
from .matcher import Candidate, match_stroke_pattern
from .reference import CharacterEntry
from .settings import LEARNING_STORAGE_KEY
from .storage import KeyValueStorage, StorageError

logger = logging.getLogger(__name__)

MERGE_SIMILARITY_THRESHOLD = 0.8
MATCH_SIMILARITY_THRESHOLD = 0.6
FREQUENCY_BONUS_PER_USE = 5
MAX_FREQUENCY_BONUS = 20
MAX_SESSIONS_IN_MEMORY = 100
MAX_SESSIONS_PERSISTED = 50

DIRECTION_WEIGHT = 0.4
POSITION_WEIGHT = 0.4
LENGTH_WEIGHT = 0.2


def _now_ms() -> int:
    return int(time.time() * 1000)


class LearnedPattern(BaseModel):
    """One user-taught stroke sequence for a character."""
    model_config = ConfigDict(populate_by_name=True)

    character: str
    strokes: List[StrokeDescriptor] = Field(alias="userStrokes")
    timestamp: int
    confidence: float = 100
    frequency: int = 1


class LearningSession(BaseModel):
    """A finished attempt, linking its strokes to a suggestion and correction."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    strokes: List[StrokeDescriptor] = Field(alias="userStrokes")
    suggested_character: str = Field(alias="suggestedCharacter")
    correct_character: Optional[str] = Field(default=None, alias="correctCharacter")
    timestamp: int


class LearningSnapshot(BaseModel):
    """Serialized form of the store: all patterns plus recent sessions."""
    model_config = ConfigDict(populate_by_name=True)

    learning_data: List[Tuple[str, List[LearnedPattern]]] = Field(
        default_factory=list, alias="learningData"
    )
    sessions: List[LearningSession] = Field(default_factory=list)


class CharacterStats(BaseModel):
    patterns: int
    total_frequency: int


def pattern_similarity(
    first: Sequence[StrokeDescriptor], second: Sequence[StrokeDescriptor]
) -> float:
    """Similarity (0-1) of two stroke sequences of equal length.

    Sequences of different length, or two empty sequences, score 0.
    """
    if len(first) != len(second) or not first:
        return 0.0

    total = 0.0
    for a, b in zip(first, second):
        score = 0.0
        if a.direction == b.direction:
            score += DIRECTION_WEIGHT
        if a.position == b.position:
            score += POSITION_WEIGHT
        if a.length == b.length:
            score += LENGTH_WEIGHT
        total += score

    return total / len(first)


class CharacterLearningStore:
    """Learned patterns keyed by character, plus the recent session ring.

    Safe to share between request threads: all access holds ``_lock``, which
    is re-entrant since mutations call ``save`` and feedback calls
    ``add_learning_data``.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: str = LEARNING_STORAGE_KEY,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.storage = storage
        self.storage_key = storage_key
        self._clock = clock or _now_ms
        self._lock = threading.RLock()
        self._learning_data: Dict[str, List[LearnedPattern]] = {}
        self._sessions: List[LearningSession] = []
        self.load()

    # --- learning ---------------------------------------------------------

    def add_learning_data(
        self,
        character: str,
        strokes: Sequence[StrokeDescriptor],
        confidence: float = 100,
    ) -> LearnedPattern:
        """Reinforce the first similar pattern for ``character`` or add a new one."""
        with self._lock:
            existing = self._learning_data.setdefault(character, [])
            now = self._clock()

            similar = self._find_similar_pattern(strokes, existing)
            if similar is not None:
                similar.frequency += 1
                similar.timestamp = now
                logger.info("Reinforced %s pattern, frequency=%d", character, similar.frequency)
                pattern = similar
            else:
                pattern = LearnedPattern(
                    character=character,
                    strokes=list(strokes),
                    timestamp=now,
                    confidence=confidence,
                    frequency=1,
                )
                existing.append(pattern)
                logger.info("Learned new %s pattern with %d stroke(s)", character, len(strokes))

            self.save()
            return pattern

    def _find_similar_pattern(
        self, strokes: Sequence[StrokeDescriptor], existing: List[LearnedPattern]
    ) -> Optional[LearnedPattern]:
        # First match above the threshold wins, not the best match.
        for pattern in existing:
            if pattern_similarity(strokes, pattern.strokes) > MERGE_SIMILARITY_THRESHOLD:
                return pattern
        return None

    def match_with_learning(
        self,
        user_strokes: Sequence[StrokeDescriptor],
        entries: Sequence[CharacterEntry],
    ) -> List[Candidate]:
        """Base ranking merged with learned-pattern scores.

        A learned pattern can only raise a character's confidence. Learned
        confidences include a frequency bonus and are not capped at 100.
        """
        results = match_stroke_pattern(user_strokes, entries)
        index_by_character = {c.character: i for i, c in enumerate(results)}

        with self._lock:
            for character, patterns in self._learning_data.items():
                for pattern in patterns:
                    similarity = pattern_similarity(user_strokes, pattern.strokes)
                    if similarity <= MATCH_SIMILARITY_THRESHOLD:
                        continue

                    frequency_bonus = min(pattern.frequency * FREQUENCY_BONUS_PER_USE, MAX_FREQUENCY_BONUS)
                    learned_confidence = similarity * 100 + frequency_bonus

                    index = index_by_character.get(character)
                    if index is not None:
                        current = results[index]
                        current.confidence = max(current.confidence, learned_confidence)
                        current.is_learned = True
                    else:
                        index_by_character[character] = len(results)
                        results.append(
                            Candidate(character=character, confidence=learned_confidence, is_learned=True)
                        )

        return sorted(results, key=lambda c: c.confidence, reverse=True)

    # --- sessions ---------------------------------------------------------

    def record_session(
        self,
        session_id: str,
        strokes: Sequence[StrokeDescriptor],
        suggested_character: str,
    ) -> LearningSession:
        session = LearningSession(
            session_id=session_id,
            strokes=list(strokes),
            suggested_character=suggested_character,
            timestamp=self._clock(),
        )
        with self._lock:
            self._sessions.append(session)

            if len(self._sessions) > MAX_SESSIONS_IN_MEMORY:
                self._sessions = self._sessions[-MAX_SESSIONS_IN_MEMORY:]

            self.save()
        return session

    def learn_from_feedback(self, session_id: str, correct_character: str) -> bool:
        """Teach ``correct_character`` from a recorded session.

        An unknown session id changes nothing and returns False.
        """
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                logger.debug("Ignoring feedback for unknown session %s", session_id)
                return False

            session.correct_character = correct_character
            self.add_learning_data(correct_character, session.strokes, 100)
        logger.info("Learned %s from feedback on session %s", correct_character, session_id)
        return True

    def get_session(self, session_id: str) -> Optional[LearningSession]:
        with self._lock:
            for session in self._sessions:
                if session.session_id == session_id:
                    return session
        return None

    @property
    def sessions(self) -> List[LearningSession]:
        with self._lock:
            return list(self._sessions)

    # --- inspection -------------------------------------------------------

    def patterns_for(self, character: str) -> List[LearnedPattern]:
        with self._lock:
            return list(self._learning_data.get(character, []))

    def get_stats(self) -> Dict[str, CharacterStats]:
        """Pattern count and summed frequency per character with patterns."""
        stats = {}
        with self._lock:
            for character, patterns in self._learning_data.items():
                if not patterns:
                    continue
                stats[character] = CharacterStats(
                    patterns=len(patterns),
                    total_frequency=sum(p.frequency for p in patterns),
                )
        return stats

    # --- persistence ------------------------------------------------------

    def snapshot(self) -> LearningSnapshot:
        with self._lock:
            return LearningSnapshot(
                learning_data=[(c, list(p)) for c, p in self._learning_data.items()],
                sessions=self._sessions[-MAX_SESSIONS_PERSISTED:],
            )

    def save(self) -> None:
        """Persist the snapshot. Storage failures are logged, never raised."""
        with self._lock:
            payload = self.snapshot().model_dump_json(by_alias=True, exclude_none=True)
            try:
                self.storage.set_item(self.storage_key, payload)
            except StorageError:
                logger.exception("Failed to save learning data")

    def load(self) -> None:
        """Restore from storage; anything unreadable is treated as no data."""
        with self._lock:
            self._learning_data = {}
            self._sessions = []

            try:
                stored = self.storage.get_item(self.storage_key)
            except StorageError:
                logger.warning("Learning data unavailable, starting empty", exc_info=True)
                return

            if not stored:
                return

            try:
                snapshot = LearningSnapshot.model_validate_json(stored)
            except ValidationError as e:
                logger.warning("Discarding corrupt learning data: %s", e)
                return

            self._learning_data = {character: patterns for character, patterns in snapshot.learning_data}
            self._sessions = snapshot.sessions
        logger.info("Loaded learning data for %d character(s)", len(self.get_stats()))

    def reset(self) -> None:
        """Forget every pattern and session and erase the stored snapshot."""
        with self._lock:
            self._learning_data.clear()
            self._sessions = []
            try:
                self.storage.remove_item(self.storage_key)
            except StorageError:
                logger.exception("Failed to erase stored learning data")
        logger.info("Learning data reset")
