# -*- coding: utf-8 -*-

"""
grid.py
Cluster detected circles into a logical row/column grid.

Rows come from a single forward pass over y-sorted circles. Vertical jitter
larger than the tolerance inside one printed row splits it in two; there is no
reconciliation pass.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import List, Sequence

from .config import DEFAULT_CONFIG, DEFAULT_OPTIONS_PER_QUESTION, ImageProcessingConfig
from .models import Circle, GridStructure, GridValidation, OMRGrid


# -----------------------------
# 1D proximity grouping
# -----------------------------
def group_by_proximity(
    items: Sequence[Circle], axis: str, threshold: float
) -> List[List[Circle]]:
    """
    Sort by `axis` ("x" or "y") and start a new group whenever the gap to the
    previous item is not below `threshold`.
    """
    if axis not in ("x", "y"):
        raise ValueError(f"axis must be 'x' or 'y', got {axis!r}")
    if not items:
        return []

    ordered = sorted(items, key=lambda c: getattr(c, axis))
    groups: List[List[Circle]] = []
    current: List[Circle] = [ordered[0]]
    for prev, item in zip(ordered, ordered[1:]):
        if abs(getattr(item, axis) - getattr(prev, axis)) < threshold:
            current.append(item)
        else:
            groups.append(current)
            current = [item]
    groups.append(current)
    return groups


def organize_circles_into_grid(
    circles: Sequence[Circle], config: ImageProcessingConfig = DEFAULT_CONFIG
) -> OMRGrid:
    if not circles:
        return []

    rows = group_by_proximity(circles, "y", config.grid_tolerance)
    grid = [sorted(row, key=lambda c: c.x) for row in rows]
    logging.debug("Organized %d circle(s) into %d row(s).", len(circles), len(grid))
    return grid


# -----------------------------
# Diagnostics
# -----------------------------
def validate_grid(
    grid: OMRGrid, options_per_question: int = DEFAULT_OPTIONS_PER_QUESTION
) -> GridValidation:
    errors: List[str] = []
    warnings: List[str] = []

    if not grid:
        errors.append("Grid is empty: no marks were detected.")
        return GridValidation(is_valid=False, errors=errors, warnings=warnings)

    for i, row in enumerate(grid, start=1):
        if not row:
            warnings.append(f"Row {i} is empty.")
            continue
        if options_per_question > 0 and len(row) % options_per_question != 0:
            warnings.append(
                f"Row {i} has {len(row)} circle(s), not a multiple of "
                f"{options_per_question} options per question."
            )

    return GridValidation(is_valid=not errors, errors=errors, warnings=warnings)


def analyze_grid_structure(grid: OMRGrid) -> GridStructure:
    total_rows = len(grid)
    total_circles = sum(len(row) for row in grid)
    average = total_circles / total_rows if total_rows else 0.0

    # most common row length; ties go to the length seen first
    lengths = Counter(len(row) for row in grid)
    options = lengths.most_common(1)[0][0] if lengths else 0
    if options <= 0:
        options = DEFAULT_OPTIONS_PER_QUESTION

    return GridStructure(
        total_rows=total_rows,
        total_circles=total_circles,
        average_circles_per_row=average,
        estimated_questions=total_circles // options,
        options_per_question=options,
    )
