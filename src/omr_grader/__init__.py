# -*- coding: utf-8 -*-

"""
omr_grader
Optical mark recognition for multiple-choice answer sheets: reads filled
bubbles from scanned or photographed sheets and grades them against a key.
"""

from .config import DEFAULT_CONFIG, MULTIPLE, ImageProcessingConfig
from .detector import detect_circles, remove_duplicate_circles
from .errors import (
    ConfigError,
    ImageDecodeError,
    InputValidationError,
    InvalidGradingInputError,
    OMRError,
)
from .grading import grade, grade_answers, grade_batch
from .grid import analyze_grid_structure, organize_circles_into_grid, validate_grid
from .mapper import map_grid_to_answers
from .models import (
    BatchGradingReport,
    BatchProcessReport,
    BatchSummary,
    Circle,
    GradingResult,
    OMRProcessResult,
    ProcessingError,
    ProcessOutcome,
    QuestionDetail,
)
from .pipeline import SheetFile, process, process_batch, process_with_template, run_batch
from .preprocess import preprocess_image
from .template import OMRTemplate, build_default_template, load_template

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_CONFIG",
    "MULTIPLE",
    "ImageProcessingConfig",
    "detect_circles",
    "remove_duplicate_circles",
    "ConfigError",
    "ImageDecodeError",
    "InputValidationError",
    "InvalidGradingInputError",
    "OMRError",
    "grade",
    "grade_answers",
    "grade_batch",
    "analyze_grid_structure",
    "organize_circles_into_grid",
    "validate_grid",
    "map_grid_to_answers",
    "BatchGradingReport",
    "BatchProcessReport",
    "BatchSummary",
    "Circle",
    "GradingResult",
    "OMRProcessResult",
    "ProcessingError",
    "ProcessOutcome",
    "QuestionDetail",
    "SheetFile",
    "process",
    "process_batch",
    "process_with_template",
    "run_batch",
    "preprocess_image",
    "OMRTemplate",
    "build_default_template",
    "load_template",
]
