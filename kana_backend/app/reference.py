"""Reference stroke table for the supported hiragana.

Hand-authored content: every entry lists its strokes in writing order with
unit-square end points. Loaded once at import and never mutated.
"""
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .features import Direction, Point, Position, StrokeDescriptor, StrokeLength


class CharacterEntry(BaseModel):
    """Canonical stroke sequence for one character."""
    model_config = ConfigDict(frozen=True)

    character: str
    strokes: Tuple[StrokeDescriptor, ...]
    total_strokes: int


_H = Direction.HORIZONTAL
_V = Direction.VERTICAL
_C = Direction.COMPLEX

_S = StrokeLength.SHORT
_M = StrokeLength.MEDIUM
_L = StrokeLength.LONG


def _stroke(direction, length, position, start, end) -> StrokeDescriptor:
    return StrokeDescriptor(
        direction=direction,
        length=length,
        position=Position(position),
        start=Point(x=start[0], y=start[1]),
        end=Point(x=end[0], y=end[1]),
    )


def _entry(character: str, *strokes: StrokeDescriptor) -> CharacterEntry:
    return CharacterEntry(character=character, strokes=strokes, total_strokes=len(strokes))


STROKE_DATABASE: Tuple[CharacterEntry, ...] = (
    # あ行
    _entry(
        "あ",
        _stroke(_H, _M, "top", (0.25, 0.15), (0.75, 0.15)),
        _stroke(_V, _L, "left", (0.3, 0.25), (0.25, 0.85)),
        _stroke(_C, _L, "right", (0.6, 0.25), (0.7, 0.85)),
    ),
    _entry(
        "い",
        _stroke(_V, _L, "left", (0.3, 0.2), (0.3, 0.8)),
        _stroke(_V, _L, "right", (0.7, 0.2), (0.7, 0.8)),
    ),
    _entry(
        "う",
        _stroke(_H, _L, "middle", (0.15, 0.35), (0.85, 0.35)),
        _stroke(_C, _L, "center", (0.5, 0.45), (0.6, 0.8)),
    ),
    _entry(
        "お",
        _stroke(_H, _M, "top", (0.2, 0.2), (0.7, 0.2)),
        _stroke(_H, _M, "middle", (0.2, 0.5), (0.8, 0.5)),
        _stroke(_V, _L, "right", (0.7, 0.3), (0.7, 0.8)),
    ),
    _entry(
        "え",
        _stroke(_H, _L, "top", (0.2, 0.25), (0.8, 0.25)),
        _stroke(_C, _L, "center", (0.3, 0.45), (0.7, 0.8)),
    ),
    # か行
    _entry(
        "か",
        _stroke(_H, _M, "top", (0.3, 0.2), (0.7, 0.2)),
        _stroke(_V, _L, "left", (0.35, 0.3), (0.3, 0.8)),
        _stroke(_C, _L, "right", (0.6, 0.4), (0.75, 0.8)),
    ),
    _entry(
        "き",
        _stroke(_H, _M, "top", (0.2, 0.2), (0.6, 0.2)),
        _stroke(_V, _L, "left", (0.25, 0.3), (0.2, 0.8)),
        _stroke(_H, _M, "middle", (0.4, 0.5), (0.8, 0.5)),
        _stroke(_V, _M, "right", (0.7, 0.3), (0.75, 0.8)),
    ),
    _entry(
        "く",
        _stroke(_C, _L, "center", (0.6, 0.2), (0.3, 0.8)),
    ),
    _entry(
        "け",
        _stroke(_H, _M, "top", (0.2, 0.2), (0.6, 0.2)),
        _stroke(_V, _L, "left", (0.25, 0.3), (0.2, 0.8)),
        _stroke(_C, _L, "right", (0.5, 0.4), (0.8, 0.8)),
    ),
    _entry(
        "こ",
        _stroke(_H, _L, "top", (0.2, 0.3), (0.8, 0.3)),
        _stroke(_H, _L, "bottom", (0.2, 0.7), (0.8, 0.7)),
    ),
    # さ行
    _entry(
        "さ",
        _stroke(_H, _M, "top", (0.3, 0.2), (0.7, 0.2)),
        _stroke(_V, _M, "center", (0.5, 0.3), (0.45, 0.6)),
        _stroke(_H, _L, "bottom", (0.2, 0.7), (0.8, 0.7)),
    ),
    _entry(
        "し",
        _stroke(_C, _L, "center", (0.5, 0.2), (0.3, 0.8)),
    ),
    _entry(
        "す",
        _stroke(_H, _M, "top", (0.3, 0.25), (0.7, 0.25)),
        _stroke(_C, _L, "center", (0.5, 0.4), (0.4, 0.8)),
    ),
    _entry(
        "せ",
        _stroke(_H, _M, "top", (0.3, 0.2), (0.7, 0.2)),
        _stroke(_V, _M, "center", (0.5, 0.3), (0.45, 0.6)),
        _stroke(_C, _L, "bottom", (0.2, 0.7), (0.8, 0.8)),
    ),
    _entry(
        "そ",
        _stroke(_C, _L, "center", (0.3, 0.2), (0.7, 0.8)),
    ),
    # た行
    _entry(
        "た",
        _stroke(_H, _M, "top", (0.3, 0.15), (0.7, 0.15)),
        _stroke(_V, _M, "left", (0.35, 0.25), (0.3, 0.6)),
        _stroke(_H, _L, "middle", (0.2, 0.4), (0.8, 0.4)),
        _stroke(_V, _L, "center", (0.5, 0.5), (0.45, 0.85)),
    ),
    _entry(
        "ち",
        _stroke(_H, _M, "top", (0.3, 0.3), (0.7, 0.3)),
        _stroke(_C, _L, "center", (0.5, 0.4), (0.4, 0.8)),
    ),
    _entry(
        "つ",
        _stroke(_C, _M, "center", (0.4, 0.3), (0.6, 0.6)),
    ),
    _entry(
        "て",
        _stroke(_H, _L, "top", (0.2, 0.3), (0.8, 0.3)),
        _stroke(_V, _L, "right", (0.7, 0.4), (0.75, 0.8)),
    ),
    _entry(
        "と",
        _stroke(_H, _M, "top", (0.3, 0.25), (0.7, 0.25)),
        _stroke(_C, _L, "center", (0.5, 0.4), (0.6, 0.8)),
    ),
    # な行
    _entry(
        "な",
        _stroke(_H, _M, "top", (0.3, 0.2), (0.7, 0.2)),
        _stroke(_V, _M, "left", (0.35, 0.3), (0.3, 0.6)),
        _stroke(_H, _M, "middle", (0.45, 0.5), (0.75, 0.5)),
        _stroke(_V, _L, "right", (0.7, 0.3), (0.75, 0.85)),
    ),
    _entry(
        "に",
        _stroke(_H, _L, "top", (0.2, 0.3), (0.8, 0.3)),
        _stroke(_V, _S, "left", (0.3, 0.4), (0.25, 0.6)),
        _stroke(_H, _L, "bottom", (0.2, 0.7), (0.8, 0.7)),
    ),
    _entry(
        "ぬ",
        _stroke(_C, _M, "left", (0.3, 0.3), (0.4, 0.6)),
        _stroke(_C, _L, "right", (0.5, 0.2), (0.7, 0.8)),
    ),
    _entry(
        "ね",
        _stroke(_C, _M, "left", (0.3, 0.2), (0.4, 0.5)),
        _stroke(_C, _L, "right", (0.5, 0.3), (0.7, 0.8)),
    ),
    _entry(
        "の",
        _stroke(_C, _L, "center", (0.3, 0.3), (0.7, 0.7)),
    ),
)

_BY_CHARACTER = {entry.character: entry for entry in STROKE_DATABASE}


def all_characters() -> Tuple[CharacterEntry, ...]:
    """Every reference entry, in table order."""
    return STROKE_DATABASE


def get_entry(character: str) -> Optional[CharacterEntry]:
    return _BY_CHARACTER.get(character)
