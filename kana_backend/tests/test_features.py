"""Test stroke feature extraction."""
import pytest

from kana_backend.app.features import (
    Direction,
    Point,
    Position,
    StrokeDescriptor,
    StrokeLength,
    analyze_path,
    analyze_stroke,
    is_tap,
)

CANVAS = 450


def describe(x0, y0, x1, y1, width=CANVAS, height=CANVAS) -> StrokeDescriptor:
    """Helper to analyze a stroke given as raw coordinates."""
    return analyze_stroke(Point(x=x0, y=y0), Point(x=x1, y=y1), width, height)


@pytest.mark.parametrize(
    "coords, expected",
    [
        ((100, 100, 300, 110), Direction.HORIZONTAL),
        ((300, 100, 100, 110), Direction.HORIZONTAL),
        ((50, 100, 60, 400), Direction.VERTICAL),
        ((60, 400, 50, 100), Direction.VERTICAL),
        ((100, 100, 300, 300), Direction.DIAGONAL_RIGHT),
        ((300, 100, 100, 300), Direction.DIAGONAL_LEFT),
        # Upward diagonals fold into complex
        ((100, 300, 300, 100), Direction.COMPLEX),
        ((300, 300, 100, 100), Direction.COMPLEX),
    ],
)
def test_direction(coords, expected):
    assert describe(*coords).direction == expected


def test_axis_dominance_boundary_is_exclusive():
    """Exactly 1.5x dominance is not enough for a straight stroke."""
    descriptor = describe(100, 100, 250, 200)  # dx=150, dy=100
    assert descriptor.direction == Direction.DIAGONAL_RIGHT


@pytest.mark.parametrize(
    "coords, expected",
    [
        ((200, 200, 210, 200), StrokeLength.SHORT),
        ((100, 100, 300, 110), StrokeLength.MEDIUM),
        ((0, 0, 450, 450), StrokeLength.LONG),
    ],
)
def test_length_relative_to_canvas_diagonal(coords, expected):
    assert describe(*coords).length == expected


def test_length_depends_on_canvas_size():
    """The same pixel distance is shorter on a bigger canvas."""
    assert describe(0, 0, 200, 0, 300, 300).length == StrokeLength.MEDIUM
    assert describe(0, 0, 200, 0, 1200, 1200).length == StrokeLength.SHORT


@pytest.mark.parametrize(
    "coords, expected",
    [
        ((100, 100, 300, 110), Position.TOP),
        ((100, 400, 300, 400), Position.BOTTOM),
        ((50, 100, 60, 400), Position.LEFT),
        ((400, 150, 400, 300), Position.RIGHT),
        ((100, 100, 300, 300), Position.CENTER),
    ],
)
def test_position_thirds(coords, expected):
    assert describe(*coords).position == expected


def test_vertical_third_wins_over_horizontal_third():
    """A midpoint in the top-left cell is classified top, not left."""
    assert describe(40, 40, 60, 60).position == Position.TOP
    assert describe(40, 400, 60, 420).position == Position.BOTTOM


def test_end_points_are_normalized_to_unit_square():
    descriptor = describe(90, 45, 360, 45, 450, 225)

    assert descriptor.start == Point(x=0.2, y=0.2)
    assert descriptor.end == Point(x=0.8, y=0.2)


def test_analyze_is_deterministic():
    first = describe(123.5, 77.25, 301.0, 260.75)
    second = describe(123.5, 77.25, 301.0, 260.75)

    assert first == second
    assert first.model_dump() == second.model_dump()


def test_degenerate_canvas_returns_best_effort_descriptor():
    descriptor = describe(10, 10, 100, 100, 0, 450)

    assert descriptor.direction == Direction.COMPLEX
    assert descriptor.length == StrokeLength.SHORT
    assert descriptor.position == Position.CENTER


def test_descriptor_serializes_with_point_aliases():
    data = describe(100, 100, 300, 110).model_dump(mode="json", by_alias=True)

    assert data["direction"] == "horizontal"
    assert data["length"] == "medium"
    assert data["position"] == "top"
    assert set(data["startPoint"]) == {"x", "y"}
    assert "endPoint" in data

    restored = StrokeDescriptor.model_validate(data)
    assert restored == describe(100, 100, 300, 110)


class TestTapDetection:
    """A click without drag must never reach the analyzer."""

    def test_single_point_is_tap(self):
        assert is_tap([Point(x=10, y=10)])

    def test_small_jitter_is_tap(self):
        assert is_tap([Point(x=10, y=10), Point(x=12, y=13), Point(x=11, y=9)])

    def test_drag_that_returns_home_is_not_tap(self):
        """Movement anywhere along the path counts, not just the end point."""
        points = [Point(x=10, y=10), Point(x=20, y=10), Point(x=11, y=10)]
        assert not is_tap(points)

    def test_threshold_is_configurable(self):
        points = [Point(x=0, y=0), Point(x=8, y=0)]
        assert not is_tap(points)
        assert is_tap(points, move_threshold=10)


def test_analyze_path_uses_first_and_last_point():
    points = [Point(x=100, y=100), Point(x=400, y=400), Point(x=300, y=110)]
    assert analyze_path(points, CANVAS, CANVAS) == describe(100, 100, 300, 110)
