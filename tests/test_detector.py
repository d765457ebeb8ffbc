import numpy as np
import pytest

from omr_grader.config import ImageProcessingConfig
from omr_grader.detector import (
    detect_circles,
    fill_ratio,
    is_circular_region,
    is_region_filled,
    remove_duplicate_circles,
    ring_offsets,
)
from omr_grader.models import Circle
from omr_grader.preprocess import binarize

from conftest import draw_sheet


def _binary(rows, offset=(0, 0)):
    return binarize(draw_sheet(rows, offset), 128)


def _near(circles, x, y, tolerance=4):
    """The one detected circle whose center is within `tolerance` of (x, y)."""
    found = [c for c in circles if abs(c.x - x) <= tolerance and abs(c.y - y) <= tolerance]
    assert len(found) == 1, found
    return found[0]


def test_ring_offsets_are_on_the_ring():
    offsets = ring_offsets(15, 16)
    assert len(offsets) == 16
    assert offsets[0] == (15, 0)
    assert offsets[4] == (0, 15)
    for dx, dy in offsets:
        assert 14.0 <= np.hypot(dx, dy) <= 16.0


def test_circularity_and_fill_are_independent():
    dark = np.zeros((60, 60), dtype=bool)
    yy, xx = np.mgrid[0:60, 0:60]
    dist = np.hypot(xx - 30, yy - 30)
    ring = (dist >= 13) & (dist <= 17)
    dark[ring] = True

    assert is_circular_region(dark, 30, 30, 15)
    assert not is_region_filled(dark, 15, 15, 30, 30, 0.5)

    blob = np.zeros((60, 60), dtype=bool)
    blob[15:45, 15:45] = True
    assert is_region_filled(blob, 15, 15, 30, 30, 0.5)
    # only the diagonal samples of a radius-20 ring land inside the square
    assert not is_circular_region(blob, 30, 30, 20)


def test_circular_region_out_of_bounds_counts_as_light():
    dark = np.ones((10, 10), dtype=bool)
    assert not is_circular_region(dark, 0, 0, 15)


def test_fill_ratio_clips_to_image():
    dark = np.ones((10, 10), dtype=bool)
    assert fill_ratio(dark, 5, 5, 20, 20) == 1.0
    assert fill_ratio(dark, 20, 20, 5, 5) == 0.0
    assert not is_region_filled(dark, 0, 0, 0, 0, 0.5)


def test_detects_each_mark_once_with_fill_state():
    rows = [
        [False, False, True, False, False],
        [True, False, False, True, False],
    ]
    circles = detect_circles(_binary(rows), ImageProcessingConfig())

    assert len(circles) == 10
    assert _near(circles, 150, 50).filled
    assert _near(circles, 50, 110).filled
    assert _near(circles, 200, 110).filled
    assert not _near(circles, 100, 50).filled
    assert sum(c.filled for c in circles) == 3
    assert all(c.radius == 15 for c in circles)


@pytest.mark.parametrize("offset", [(d, d) for d in range(5)] + [(3, 0), (0, 3)])
def test_detects_marks_off_the_scan_grid(offset):
    dx, dy = offset
    rows = [[False, False, True, False, False]]
    circles = detect_circles(_binary(rows, offset), ImageProcessingConfig())

    assert len(circles) == 5
    assert _near(circles, 150 + dx, 50 + dy).filled
    assert sum(c.filled for c in circles) == 1


def test_blank_image_has_no_circles():
    blank = np.full((200, 200), 255, dtype=np.uint8)
    assert detect_circles(blank) == []


def test_image_smaller_than_window_has_no_circles():
    tiny = np.zeros((30, 30), dtype=np.uint8)
    assert detect_circles(tiny) == []


def test_duplicates_within_min_radius_are_merged():
    a = Circle(x=100, y=100, radius=15, filled=False)
    b = Circle(x=103, y=100, radius=15, filled=False)
    assert remove_duplicate_circles([a, b], 10) == [a]


def test_filled_duplicate_replaces_unfilled_survivor():
    a = Circle(x=100, y=100, radius=15, filled=False)
    b = Circle(x=103, y=100, radius=15, filled=True)
    c = Circle(x=200, y=100, radius=15, filled=False)
    assert remove_duplicate_circles([a, c, b], 10) == [b, c]
    # an unfilled duplicate never displaces a filled one
    assert remove_duplicate_circles([b, a], 10) == [b]


def test_circles_at_min_distance_are_kept():
    a = Circle(x=100, y=100, radius=15, filled=False)
    b = Circle(x=110, y=100, radius=15, filled=False)
    assert remove_duplicate_circles([a, b], 10) == [a, b]
