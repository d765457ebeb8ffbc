# -*- coding: utf-8 -*-

"""
template.py
Template-based reading: sample fixed marker boxes instead of searching for
circles. Marker boxes are given in percent of the image size.

Templates are parsed once and shared read-only between sheets.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from .config import DEFAULT_OPTIONS_PER_QUESTION
from .errors import ConfigError
from .models import StudentAnswers


MARKING_THRESHOLD = 180.0  # mean brightness 0..255, lower is darker
DIFFERENCE_THRESHOLD = 30.0  # darkest vs runner-up


@dataclass(frozen=True)
class MarkerPosition:
    question_number: int
    option_number: int  # 1-based
    x: float  # percent of width
    y: float  # percent of height
    width: float
    height: float

    def to_pixels(self, img_w: int, img_h: int) -> Tuple[int, int, int, int]:
        return (
            int(self.x / 100.0 * img_w),
            int(self.y / 100.0 * img_h),
            int(self.width / 100.0 * img_w),
            int(self.height / 100.0 * img_h),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionNumber": self.question_number,
            "optionNumber": self.option_number,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class OMRTemplate:
    name: str
    total_questions: int
    options_per_question: int
    markers: Tuple[MarkerPosition, ...] = field(default_factory=tuple)

    def markers_for(self, question_number: int) -> List[MarkerPosition]:
        return [m for m in self.markers if m.question_number == question_number]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OMRTemplate":
        try:
            markers = tuple(
                MarkerPosition(
                    question_number=int(m["questionNumber"]),
                    option_number=int(m["optionNumber"]),
                    x=float(m["x"]),
                    y=float(m["y"]),
                    width=float(m["width"]),
                    height=float(m["height"]),
                )
                for m in data.get("markers", [])
            )
            template = cls(
                name=str(data.get("name", "")),
                total_questions=int(data["totalQuestions"]),
                options_per_question=int(
                    data.get("optionsPerQuestion", DEFAULT_OPTIONS_PER_QUESTION)
                ),
                markers=markers,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid OMR template: {e}") from e

        if template.total_questions <= 0:
            raise ConfigError("Template totalQuestions must be positive.")
        return template

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "totalQuestions": self.total_questions,
            "optionsPerQuestion": self.options_per_question,
            "markers": [m.to_dict() for m in self.markers],
        }


# -----------------------------
# Default layout (45 questions, 5 options, 3 columns)
# -----------------------------
DEFAULT_LAYOUT: Dict[str, Any] = {
    "horizontal_spacing": 1.48,
    "vertical_spacing": 3.76,
    "marker_width": 1.4,
    "marker_height": 2.0,
    "columns": [
        {"start": 1, "end": 20, "start_x": 59.4, "start_y": 17.92},
        {"start": 21, "end": 34, "start_x": 72.4, "start_y": 17.92},
        {"start": 35, "end": 45, "start_x": 84.5, "start_y": 17.92},
    ],
}


def generate_markers(
    layout: Mapping[str, Any] = DEFAULT_LAYOUT,
    options_per_question: int = DEFAULT_OPTIONS_PER_QUESTION,
) -> List[MarkerPosition]:
    markers: List[MarkerPosition] = []
    for column in layout["columns"]:
        for q in range(column["start"], column["end"] + 1):
            row_idx = q - column["start"]
            for opt in range(1, options_per_question + 1):
                markers.append(
                    MarkerPosition(
                        question_number=q,
                        option_number=opt,
                        x=column["start_x"] + (opt - 1) * layout["horizontal_spacing"],
                        y=column["start_y"] + row_idx * layout["vertical_spacing"],
                        width=layout["marker_width"],
                        height=layout["marker_height"],
                    )
                )
    return markers


def build_default_template() -> OMRTemplate:
    markers = generate_markers()
    return OMRTemplate(
        name="Default OMR template (45 questions)",
        total_questions=max(m.question_number for m in markers),
        options_per_question=DEFAULT_OPTIONS_PER_QUESTION,
        markers=tuple(markers),
    )


# -----------------------------
# Loading
# -----------------------------
def load_template(path: str) -> OMRTemplate:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read template {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Template {path} must contain a JSON object")
    return OMRTemplate.from_dict(data)


class TemplateCache:
    """Parsed templates by path. Entries are never replaced once loaded."""

    def __init__(self) -> None:
        self._templates: Dict[str, OMRTemplate] = {}
        self._lock = threading.Lock()

    def get(self, path: str) -> OMRTemplate:
        template = self._templates.get(path)
        if template is not None:
            return template
        with self._lock:
            if path not in self._templates:
                self._templates[path] = load_template(path)
                logging.info("Loaded OMR template: %s", path)
            return self._templates[path]

    def __len__(self) -> int:
        return len(self._templates)


# shared by every caller that loads templates from disk
TEMPLATE_CACHE = TemplateCache()


# -----------------------------
# Analysis
# -----------------------------
def marker_darkness(gray: np.ndarray, marker: MarkerPosition) -> float:
    """Mean brightness of the marker box; 255 when the box is empty."""
    img_h, img_w = gray.shape[:2]
    x, y, w, h = marker.to_pixels(img_w, img_h)
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(img_w, x + w), min(img_h, y + h)
    if x1 <= x0 or y1 <= y0:
        return 255.0
    return float(np.mean(gray[y0:y1, x0:x1]))


def resolve_template_question(darkness: List[Tuple[int, float]]) -> Optional[str]:
    """Option number of a clear single mark, or None."""
    if not darkness:
        return None
    ranked = sorted(darkness, key=lambda d: d[1])
    darkest_opt, darkest = ranked[0]
    runner_up = ranked[1][1] if len(ranked) > 1 else 255.0
    if darkest < MARKING_THRESHOLD and runner_up - darkest > DIFFERENCE_THRESHOLD:
        return str(darkest_opt)
    return None


def analyze_with_template(gray: np.ndarray, template: OMRTemplate) -> StudentAnswers:
    answers: StudentAnswers = {}
    for q in range(1, template.total_questions + 1):
        markers = template.markers_for(q)
        if not markers:
            continue
        darkness = [(m.option_number, marker_darkness(gray, m)) for m in markers]
        answer = resolve_template_question(darkness)
        if answer is not None:
            answers[q] = answer
        else:
            logging.debug(
                "Q%d unresolved: %s",
                q,
                ", ".join(f"{opt}={d:.1f}" for opt, d in darkness),
            )
    return answers
