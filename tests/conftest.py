from typing import List, Sequence, Tuple

import cv2
import numpy as np
import pytest

from omr_grader.models import Circle


SPACING_X = 50
SPACING_Y = 60
ORIGIN = 50


def draw_sheet(
    rows: Sequence[Sequence[bool]], offset: Tuple[int, int] = (0, 0)
) -> np.ndarray:
    """
    White sheet with one ring per option; True options are filled in.
    `offset` shifts every center by (dx, dy) pixels.
    """
    ox, oy = offset
    n_cols = max((len(r) for r in rows), default=1)
    width = ORIGIN + SPACING_X * (n_cols - 1) + 60 + ox
    height = ORIGIN + SPACING_Y * (len(rows) - 1) + 60 + oy
    img = np.full((height, width), 255, dtype=np.uint8)
    for i, row in enumerate(rows):
        for j, filled in enumerate(row):
            center = (ORIGIN + SPACING_X * j + ox, ORIGIN + SPACING_Y * i + oy)
            if filled:
                cv2.circle(img, center, 16, 0, -1)
            else:
                cv2.circle(img, center, 15, 0, 4)
    return img


def encode_png(img: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


@pytest.fixture
def sheet_png():
    def make(rows: Sequence[Sequence[bool]], offset: Tuple[int, int] = (0, 0)) -> bytes:
        return encode_png(draw_sheet(rows, offset))

    return make


def row_of(filled: Sequence[bool], y: int = 100, start_x: int = 50, step: int = 50) -> List[Circle]:
    return [
        Circle(x=start_x + i * step, y=y, radius=15, filled=f) for i, f in enumerate(filled)
    ]


@pytest.fixture
def make_row():
    return row_of
