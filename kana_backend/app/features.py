"""Stroke feature extraction.

Turns raw pointer geometry into categorical stroke descriptors. Everything
here is pure: the same start/end points and canvas size always give the
same descriptor.
"""
from enum import Enum
from typing import Sequence, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

# Dominance ratio between the two axes for a straight horizontal/vertical call
AXIS_DOMINANCE = 1.5

# Length ratio (stroke length / canvas diagonal) boundaries
SHORT_RATIO = 0.2
MEDIUM_RATIO = 0.5

# Canvas thirds used for the position category
LOWER_THIRD = 0.33
UPPER_THIRD = 0.67


class Direction(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    DIAGONAL_RIGHT = "diagonal-right"
    DIAGONAL_LEFT = "diagonal-left"
    CURVE_RIGHT = "curve-right"
    CURVE_LEFT = "curve-left"
    COMPLEX = "complex"


class StrokeLength(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class Position(str, Enum):
    TOP = "top"
    MIDDLE = "middle"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


class Point(BaseModel):
    """A 2-D point, either in device pixels or in the unit square."""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class StrokeDescriptor(BaseModel):
    """Normalized categorical summary of one stroke.

    Serialized with the ``startPoint``/``endPoint`` keys of the persisted
    learning snapshot.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    direction: Direction
    length: StrokeLength
    position: Position
    start: Point = Field(alias="startPoint")
    end: Point = Field(alias="endPoint")


def classify_direction(dx: float, dy: float) -> Direction:
    """Classify a stroke vector.

    Upward diagonals (dy < 0) fall through to ``complex``.
    """
    abs_x = abs(dx)
    abs_y = abs(dy)

    if abs_x > abs_y * AXIS_DOMINANCE:
        return Direction.HORIZONTAL
    if abs_y > abs_x * AXIS_DOMINANCE:
        return Direction.VERTICAL
    if dx > 0 and dy > 0:
        return Direction.DIAGONAL_RIGHT
    if dx < 0 and dy > 0:
        return Direction.DIAGONAL_LEFT
    return Direction.COMPLEX


def classify_length(distance: float, canvas_width: float, canvas_height: float) -> StrokeLength:
    """Classify a stroke length relative to the canvas diagonal."""
    diagonal = float(np.hypot(canvas_width, canvas_height))
    ratio = distance / diagonal

    if ratio < SHORT_RATIO:
        return StrokeLength.SHORT
    if ratio < MEDIUM_RATIO:
        return StrokeLength.MEDIUM
    return StrokeLength.LONG


def classify_position(
    start: Point, end: Point, canvas_width: float, canvas_height: float
) -> Position:
    """Classify the stroke midpoint into canvas thirds.

    The vertical axis wins: a midpoint in the top-left cell is ``top``.
    """
    relative_x = (start.x + end.x) / 2 / canvas_width
    relative_y = (start.y + end.y) / 2 / canvas_height

    if relative_y < LOWER_THIRD:
        return Position.TOP
    if relative_y > UPPER_THIRD:
        return Position.BOTTOM
    if relative_x < LOWER_THIRD:
        return Position.LEFT
    if relative_x > UPPER_THIRD:
        return Position.RIGHT
    return Position.CENTER


def analyze_stroke(
    start: Point, end: Point, canvas_width: float, canvas_height: float
) -> StrokeDescriptor:
    """Build the descriptor for a stroke from its end points.

    A non-positive canvas dimension yields a ``complex/short/center``
    descriptor at the origin so the pipeline stays total.
    """
    if canvas_width <= 0 or canvas_height <= 0:
        origin = Point(x=0.0, y=0.0)
        return StrokeDescriptor(
            direction=Direction.COMPLEX,
            length=StrokeLength.SHORT,
            position=Position.CENTER,
            start=origin,
            end=origin,
        )

    delta = np.array([end.x - start.x, end.y - start.y], dtype=np.float64)
    distance = float(np.linalg.norm(delta))

    return StrokeDescriptor(
        direction=classify_direction(float(delta[0]), float(delta[1])),
        length=classify_length(distance, canvas_width, canvas_height),
        position=classify_position(start, end, canvas_width, canvas_height),
        start=Point(x=start.x / canvas_width, y=start.y / canvas_height),
        end=Point(x=end.x / canvas_width, y=end.y / canvas_height),
    )


def is_tap(points: Sequence[Point], move_threshold: float = 5.0) -> bool:
    """True when a pointer path is a click without drag."""
    if len(points) < 2:
        return True
    arr = np.array([(p.x, p.y) for p in points], dtype=np.float64)
    displacement = np.linalg.norm(arr - arr[0], axis=1)
    return bool(np.max(displacement) <= move_threshold)


def path_endpoints(points: Sequence[Point]) -> Tuple[Point, Point]:
    """First and last point of a pointer path."""
    return points[0], points[-1]


def analyze_path(
    points: Sequence[Point], canvas_width: float, canvas_height: float
) -> StrokeDescriptor:
    """Analyze a full pointer path by its end points.

    Callers filter taps with ``is_tap`` first; the path must hold at least
    two points.
    """
    start, end = path_endpoints(points)
    return analyze_stroke(start, end, canvas_width, canvas_height)
