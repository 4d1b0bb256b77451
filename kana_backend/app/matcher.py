"""Base stroke matcher.

Scores an in-progress descriptor sequence against every reference entry.

Per stroke (out of 100):
- direction: 50 on exact match, 15 when either side is ``complex``, else 0
- position: 35 on exact match, else graded ordinal similarity x 35
- length: 15 on exact match, else a flat 8

Only the first ``min(len(user), len(entry))`` strokes are compared, so a
partially written character is scored on what exists so far. Each stroke of
difference from the expected count costs 5 points before normalizing.
"""
import math
from typing import List, Sequence

from pydantic import BaseModel

from .features import Direction, Position, StrokeDescriptor
from .reference import CharacterEntry

DIRECTION_POINTS = 50
COMPLEX_LENIENCY_POINTS = 15
POSITION_POINTS = 35
LENGTH_POINTS = 15
LENGTH_NEAR_MISS_POINTS = 8
STROKE_COUNT_PENALTY = 5

# Vertical and horizontal senses share one 0-2 axis; middle and center are both 1
POSITION_ORDINALS = {
    Position.TOP: 0,
    Position.LEFT: 0,
    Position.MIDDLE: 1,
    Position.CENTER: 1,
    Position.BOTTOM: 2,
    Position.RIGHT: 2,
}


class Candidate(BaseModel):
    """A character with its confidence at one point in time.

    Learned confidences may exceed 100; they are only used for ranking.
    """
    character: str
    confidence: float
    is_learned: bool = False


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values, unlike ``round``."""
    return int(math.floor(value + 0.5))


def position_similarity(first: Position, second: Position) -> float:
    distance = abs(POSITION_ORDINALS[first] - POSITION_ORDINALS[second])
    return max(0.0, 1 - distance / 2)


def score_stroke(user: StrokeDescriptor, reference: StrokeDescriptor) -> int:
    """Score one user stroke against one reference stroke (0-100)."""
    score = 0

    if user.direction == reference.direction:
        score += DIRECTION_POINTS
    elif Direction.COMPLEX in (user.direction, reference.direction):
        score += COMPLEX_LENIENCY_POINTS

    if user.position == reference.position:
        score += POSITION_POINTS
    else:
        score += round_half_up(position_similarity(user.position, reference.position) * POSITION_POINTS)

    if user.length == reference.length:
        score += LENGTH_POINTS
    else:
        score += LENGTH_NEAR_MISS_POINTS

    return score


def score_candidate(user_strokes: Sequence[StrokeDescriptor], entry: CharacterEntry) -> int:
    """Confidence (0-100) that ``user_strokes`` is a prefix of ``entry``."""
    evaluation_length = min(len(user_strokes), len(entry.strokes))
    max_possible = 100 * evaluation_length
    if max_possible == 0:
        return 0

    total_score = sum(
        score_stroke(user_strokes[i], entry.strokes[i]) for i in range(evaluation_length)
    )

    penalty = abs(len(user_strokes) - entry.total_strokes) * STROKE_COUNT_PENALTY
    adjusted = max(0, total_score - penalty)

    return round_half_up(min(100.0, 100 * adjusted / max_possible))


def match_stroke_pattern(
    user_strokes: Sequence[StrokeDescriptor],
    entries: Sequence[CharacterEntry],
) -> List[Candidate]:
    """Rank every entry by confidence, highest first.

    The sort is stable so equal confidences keep table order.
    """
    results = [
        Candidate(character=entry.character, confidence=score_candidate(user_strokes, entry))
        for entry in entries
    ]
    return sorted(results, key=lambda c: c.confidence, reverse=True)
