# -*- coding: utf-8 -*-

"""
detector.py
Sliding-window search for circular marks in a binarized pixel buffer.

Two independent measurements are taken per accepted position:
- circularity: dark fraction of RING_SAMPLES points on a ring around the center
- fill: dark fraction of the bounding box
A circle can be a good ring and still unfilled, or filled and a poor ring.
"""

from __future__ import annotations

import logging
import math
from typing import List, Sequence, Tuple

import numpy as np

from .config import (
    CIRCULARITY_CUTOFF,
    DARK_PIXEL_CUTOFF,
    DEFAULT_CONFIG,
    RING_SAMPLES,
    SCAN_STEP,
    ImageProcessingConfig,
)
from .models import Circle, PixelBuffer


def dark_mask(pixels: PixelBuffer) -> np.ndarray:
    return np.asarray(pixels) < DARK_PIXEL_CUTOFF


def ring_offsets(radius: int, samples: int = RING_SAMPLES) -> List[Tuple[int, int]]:
    """(dx, dy) of `samples` points evenly spaced on a ring of `radius`."""
    offsets = []
    for i in range(samples):
        angle = 2.0 * math.pi * i / samples
        dx = int(round(math.cos(angle) * radius))
        dy = int(round(math.sin(angle) * radius))
        offsets.append((dx, dy))
    return offsets


# -----------------------------
# Per-position tests
# -----------------------------
def is_circular_region(
    dark: np.ndarray,
    cx: int,
    cy: int,
    radius: int,
    samples: int = RING_SAMPLES,
    cutoff: float = CIRCULARITY_CUTOFF,
) -> bool:
    h, w = dark.shape[:2]
    hits = 0
    for dx, dy in ring_offsets(radius, samples):
        x = cx + dx
        y = cy + dy
        if 0 <= x < w and 0 <= y < h and dark[y, x]:
            hits += 1
    return hits / float(samples) > cutoff


def fill_ratio(dark: np.ndarray, x: int, y: int, w: int, h: int) -> float:
    """Dark fraction of the box (x, y, w, h), clipped to the image."""
    img_h, img_w = dark.shape[:2]
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(img_w, x + w), min(img_h, y + h)
    if x1 <= x0 or y1 <= y0:
        return 0.0
    return float(np.mean(dark[y0:y1, x0:x1]))


def is_region_filled(
    dark: np.ndarray, x: int, y: int, w: int, h: int, threshold: float
) -> bool:
    if w <= 0 or h <= 0:
        return False
    return fill_ratio(dark, x, y, w, h) > threshold


# -----------------------------
# Scan
# -----------------------------
def _ring_hits_along_row(
    dark: np.ndarray, cy: int, radius: int, x_limit: int, offsets: Sequence[Tuple[int, int]]
) -> np.ndarray:
    """
    Dark ring-sample counts for every window origin x in [0, x_limit) on the
    scanline whose centers sit at row cy (center x = origin + radius).
    """
    h, w = dark.shape[:2]
    hits = np.zeros(x_limit, dtype=np.int32)
    xs = np.arange(x_limit) + radius
    for dx, dy in offsets:
        y = cy + dy
        if not (0 <= y < h):
            continue
        cols = xs + dx
        valid = (cols >= 0) & (cols < w)
        row = dark[y]
        hits[valid] += row[cols[valid]]
    return hits


def scan_for_circles(
    pixels: PixelBuffer, config: ImageProcessingConfig = DEFAULT_CONFIG
) -> List[Circle]:
    """Raw scan in row-major order, before deduplication."""
    dark = dark_mask(pixels)
    h, w = dark.shape[:2]
    radius = config.test_radius
    diameter = radius * 2
    y_limit = h - config.max_circle_radius * 2
    x_limit = w - config.max_circle_radius * 2
    if y_limit <= 0 or x_limit <= 0 or radius <= 0:
        logging.debug("Image %dx%d too small to scan for circles.", w, h)
        return []

    offsets = ring_offsets(radius, RING_SAMPLES)
    min_hits = CIRCULARITY_CUTOFF * RING_SAMPLES

    circles: List[Circle] = []
    for y in range(0, y_limit, SCAN_STEP):
        hits = _ring_hits_along_row(dark, y + radius, radius, x_limit, offsets)
        # window origins tested on this scanline: next_x, next_x + SCAN_STEP, ...
        next_x = 0
        for x in np.flatnonzero(hits > min_hits):
            x = int(x)
            if x < next_x or (x - next_x) % SCAN_STEP:
                continue
            filled = is_region_filled(dark, x, y, diameter, diameter, config.fill_threshold)
            circles.append(Circle(x=x + radius, y=y + radius, radius=radius, filled=filled))
            # skip past this mark
            next_x = x + diameter + SCAN_STEP
    return circles


def remove_duplicate_circles(
    circles: Sequence[Circle], min_distance: float
) -> List[Circle]:
    """
    Merge circles whose centers are closer than `min_distance`.

    Scan order decides which one survives, except that a filled duplicate
    replaces an unfilled survivor in place.
    """
    unique: List[Circle] = []
    for circle in circles:
        dup_idx = -1
        for i, existing in enumerate(unique):
            if math.hypot(circle.x - existing.x, circle.y - existing.y) < min_distance:
                dup_idx = i
                break
        if dup_idx < 0:
            unique.append(circle)
        elif circle.filled and not unique[dup_idx].filled:
            unique[dup_idx] = circle
    return unique


def detect_circles(
    pixels: PixelBuffer, config: ImageProcessingConfig = DEFAULT_CONFIG
) -> List[Circle]:
    raw = scan_for_circles(pixels, config)
    circles = remove_duplicate_circles(raw, config.min_circle_radius)

    if not circles:
        logging.warning("No circles detected.")
        return []

    logging.info(
        "Detected %d circle(s) (%d filled, %d duplicate(s) removed).",
        len(circles),
        sum(1 for c in circles if c.filled),
        len(raw) - len(circles),
    )
    return circles
