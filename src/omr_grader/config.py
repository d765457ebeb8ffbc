# -*- coding: utf-8 -*-

"""
config.py
Tunable thresholds and fixed constants of the OMR pipeline.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping

from .errors import ConfigError


# -----------------------------
# Fixed constants
# -----------------------------
DEFAULT_OPTIONS_PER_QUESTION = 5
DEFAULT_MAX_WIDTH = 1200
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB per image

SCAN_STEP = 2  # sliding window step; every mark gets a tested center within ~1.4px
RING_SAMPLES = 16
CIRCULARITY_CUTOFF = 0.6  # dark fraction of ring samples
DARK_PIXEL_CUTOFF = 128  # luminance below this is "dark", independent of threshold

MULTIPLE = "MULTIPLE"
MULTIPLE_MARKING_LABEL = "Multiple marking"


# camelCase wire names -> field names
_ALIASES = {
    "threshold": "threshold",
    "minCircleRadius": "min_circle_radius",
    "maxCircleRadius": "max_circle_radius",
    "gridTolerance": "grid_tolerance",
    "fillThreshold": "fill_threshold",
}


@dataclass(frozen=True)
class ImageProcessingConfig:
    threshold: int = 128  # binarization cutoff (0..255)
    min_circle_radius: int = 10
    max_circle_radius: int = 20
    grid_tolerance: float = 20.0  # px
    fill_threshold: float = 0.5  # dark fraction (0..1)

    @property
    def test_radius(self) -> int:
        return (self.min_circle_radius + self.max_circle_radius) // 2

    def validate(self) -> "ImageProcessingConfig":
        if not (0 <= self.threshold <= 255):
            raise ConfigError(f"threshold must be within 0..255, got {self.threshold}")
        if self.min_circle_radius <= 0:
            raise ConfigError(
                f"min_circle_radius must be positive, got {self.min_circle_radius}"
            )
        if self.max_circle_radius < self.min_circle_radius:
            raise ConfigError(
                "max_circle_radius (%d) is smaller than min_circle_radius (%d)"
                % (self.max_circle_radius, self.min_circle_radius)
            )
        if self.grid_tolerance <= 0:
            raise ConfigError(f"grid_tolerance must be positive, got {self.grid_tolerance}")
        if not (0.0 <= self.fill_threshold <= 1.0):
            raise ConfigError(
                f"fill_threshold must be within 0..1, got {self.fill_threshold}"
            )
        return self

    def with_overrides(self, **overrides: Any) -> "ImageProcessingConfig":
        """Copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ImageProcessingConfig":
        """Build from a dict using either camelCase or snake_case keys."""
        known = {f.name: f for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ConfigError(f"Unknown config key: {key}")
            values[name] = value
        try:
            cfg = cls(
                threshold=int(values.get("threshold", cls.threshold)),
                min_circle_radius=int(
                    values.get("min_circle_radius", cls.min_circle_radius)
                ),
                max_circle_radius=int(
                    values.get("max_circle_radius", cls.max_circle_radius)
                ),
                grid_tolerance=float(values.get("grid_tolerance", cls.grid_tolerance)),
                fill_threshold=float(values.get("fill_threshold", cls.fill_threshold)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid config value: {e}") from e
        return cfg.validate()

    @classmethod
    def from_json_file(cls, path: str) -> "ImageProcessingConfig":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        return cls.from_mapping(data)

    def to_dict(self) -> Dict[str, Any]:
        reverse = {v: k for k, v in _ALIASES.items()}
        return {reverse[k]: v for k, v in asdict(self).items()}


DEFAULT_CONFIG = ImageProcessingConfig()


# -----------------------------
# Logging
# -----------------------------
def setup_logger(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
