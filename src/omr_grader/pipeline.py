# -*- coding: utf-8 -*-

"""
pipeline.py
Per-sheet pipeline (preprocess -> detect -> organize -> map) and batch fan-out.

Each sheet is processed independently; a failing sheet is reported in the
errors list and never stops its siblings.
"""

from __future__ import annotations

import logging
import mimetypes
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

import cv2

from .config import (
    DEFAULT_CONFIG,
    DEFAULT_MAX_WIDTH,
    DEFAULT_OPTIONS_PER_QUESTION,
    MAX_FILE_SIZE,
    ImageProcessingConfig,
)
from .debug import DebugCollector
from .detector import detect_circles
from .errors import InputValidationError, InvalidGradingInputError, OMRError
from .grading import grade_batch, summarize, validate_grading_input
from .grid import organize_circles_into_grid, validate_grid
from .mapper import check_options_per_question, map_grid_to_answers
from .models import (
    BatchGradingReport,
    BatchProcessReport,
    OMRGrid,
    OMRProcessResult,
    ProcessingError,
    PreprocessedImage,
    ProcessOutcome,
)
from .preprocess import preprocess_image
from .template import OMRTemplate, analyze_with_template


@dataclass(frozen=True)
class SheetFile:
    file_name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def resolved_content_type(self) -> str:
        if self.content_type:
            return self.content_type
        guessed, _ = mimetypes.guess_type(self.file_name)
        return guessed or "application/octet-stream"

    @classmethod
    def from_path(cls, path: str, content_type: Optional[str] = None) -> "SheetFile":
        with open(path, "rb") as f:
            data = f.read()
        return cls(file_name=os.path.basename(path), data=data, content_type=content_type)


@dataclass(frozen=True)
class SheetAnalysis:
    outcome: ProcessOutcome
    grid: OMRGrid
    image: PreprocessedImage


def validate_sheet_file(sheet: SheetFile, max_file_size: int = MAX_FILE_SIZE) -> None:
    if len(sheet.data) > max_file_size:
        raise InputValidationError(
            "File size %d bytes exceeds the %d MB limit."
            % (len(sheet.data), max_file_size // (1024 * 1024))
        )
    content_type = sheet.resolved_content_type
    if not content_type.startswith("image/"):
        raise InputValidationError(f"Not an image file (content type {content_type}).")


# -----------------------------
# Single sheet
# -----------------------------
def analyze_sheet(
    image: bytes,
    config: Optional[ImageProcessingConfig] = None,
    options_per_question: int = DEFAULT_OPTIONS_PER_QUESTION,
    max_width: int = DEFAULT_MAX_WIDTH,
) -> SheetAnalysis:
    """process() that also hands back the intermediate image and grid."""
    cfg = (config or DEFAULT_CONFIG).validate()
    check_options_per_question(options_per_question)

    prepared = preprocess_image(image, cfg, max_width)
    circles = detect_circles(prepared.pixels, cfg)
    grid = organize_circles_into_grid(circles, cfg)

    validation = validate_grid(grid, options_per_question)
    warnings = list(validation.errors) + list(validation.warnings)
    for w in warnings:
        logging.warning("%s", w)

    answers = map_grid_to_answers(grid, options_per_question)
    outcome = ProcessOutcome(
        answers=answers,
        total_detected=len(answers),
        circle_count=len(circles),
        warnings=warnings,
    )
    return SheetAnalysis(outcome=outcome, grid=grid, image=prepared)


def process(
    image: bytes,
    config: Optional[ImageProcessingConfig] = None,
    options_per_question: int = DEFAULT_OPTIONS_PER_QUESTION,
    max_width: int = DEFAULT_MAX_WIDTH,
) -> ProcessOutcome:
    """Read one answer sheet image into per-question answers."""
    return analyze_sheet(image, config, options_per_question, max_width).outcome


def process_with_template(
    image: bytes,
    template: OMRTemplate,
    max_width: int = DEFAULT_MAX_WIDTH,
) -> ProcessOutcome:
    prepared = preprocess_image(image, DEFAULT_CONFIG, max_width)
    answers = analyze_with_template(prepared.gray, template)
    return ProcessOutcome(answers=answers, total_detected=len(answers))


def process_sheet(
    sheet: SheetFile,
    config: Optional[ImageProcessingConfig] = None,
    options_per_question: int = DEFAULT_OPTIONS_PER_QUESTION,
    max_width: int = DEFAULT_MAX_WIDTH,
    template: Optional[OMRTemplate] = None,
) -> OMRProcessResult:
    return _run_sheet(sheet, config, options_per_question, max_width, template)[0]


def _run_sheet(
    sheet: SheetFile,
    config: Optional[ImageProcessingConfig],
    options_per_question: int,
    max_width: int,
    template: Optional[OMRTemplate],
) -> Tuple[OMRProcessResult, Optional[SheetAnalysis]]:
    """The result plus, for circle detection, the intermediate analysis."""
    validate_sheet_file(sheet)
    analysis: Optional[SheetAnalysis] = None
    if template is not None:
        outcome = process_with_template(sheet.data, template, max_width)
    else:
        analysis = analyze_sheet(sheet.data, config, options_per_question, max_width)
        outcome = analysis.outcome
    logging.info("%s: %d answer(s) detected.", sheet.file_name, outcome.total_detected)
    result = OMRProcessResult(
        file_name=sheet.file_name,
        answers=outcome.answers,
        total_detected=outcome.total_detected,
        processed_at=datetime.now(timezone.utc),
        circle_count=outcome.circle_count,
        warnings=outcome.warnings,
    )
    return result, analysis


# -----------------------------
# Batch
# -----------------------------
SheetRun = Tuple[Union[OMRProcessResult, ProcessingError], Optional[SheetAnalysis]]


def _process_one(
    sheet: SheetFile,
    config: Optional[ImageProcessingConfig],
    options_per_question: int,
    max_width: int,
    template: Optional[OMRTemplate],
) -> SheetRun:
    try:
        return _run_sheet(sheet, config, options_per_question, max_width, template)
    except (OMRError, cv2.error) as e:
        logging.warning("Processing failed for %s: %s", sheet.file_name, e)
        return ProcessingError(file_name=sheet.file_name, error=str(e)), None
    except Exception as e:
        logging.exception("Unexpected failure while processing %s", sheet.file_name)
        return ProcessingError(file_name=sheet.file_name, error=str(e) or repr(e)), None


def process_batch(
    files: Sequence[SheetFile],
    config: Optional[ImageProcessingConfig] = None,
    options_per_question: int = DEFAULT_OPTIONS_PER_QUESTION,
    max_width: int = DEFAULT_MAX_WIDTH,
    max_workers: Optional[int] = None,
    template: Optional[OMRTemplate] = None,
    debug: Optional[DebugCollector] = None,
) -> BatchProcessReport:
    """
    Process sheets in parallel. Results and errors keep the input order.

    With `debug`, every successfully analyzed sheet is added to the collector
    (in input order) from the analysis the batch already made.
    """
    cfg = (config or DEFAULT_CONFIG).validate()
    check_options_per_question(options_per_question)

    if not files:
        return BatchProcessReport(results=[], errors=[])

    workers = max_workers if max_workers and max_workers > 0 else min(8, len(files))
    with ThreadPoolExecutor(max_workers=workers) as ex:
        runs = list(
            ex.map(
                lambda f: _process_one(f, cfg, options_per_question, max_width, template),
                files,
            )
        )

    results: List[OMRProcessResult] = []
    errors: List[ProcessingError] = []
    for outcome, analysis in runs:
        if isinstance(outcome, ProcessingError):
            errors.append(outcome)
            continue
        results.append(outcome)
        if debug is not None and analysis is not None:
            debug.add(
                outcome.file_name,
                analysis.image.gray,
                analysis.grid,
                options_per_question,
            )

    logging.info(
        "Processed %d file(s): %d succeeded, %d failed.",
        len(files),
        len(results),
        len(errors),
    )
    return BatchProcessReport(results=results, errors=errors)


def run_batch(
    files: Sequence[SheetFile],
    answer_key: Mapping[Any, Any],
    total_questions: int,
    config: Optional[ImageProcessingConfig] = None,
    options_per_question: int = DEFAULT_OPTIONS_PER_QUESTION,
    max_width: int = DEFAULT_MAX_WIDTH,
    max_workers: Optional[int] = None,
    template: Optional[OMRTemplate] = None,
    debug: Optional[DebugCollector] = None,
) -> BatchGradingReport:
    """Process then grade. Processing errors are carried into the report."""
    if not files:
        raise InvalidGradingInputError("No answer sheets to grade.")
    key = validate_grading_input(answer_key, total_questions)

    processed = process_batch(
        files, config, options_per_question, max_width, max_workers, template, debug
    )
    if not processed.results:
        logging.warning("No sheet could be processed; nothing to grade.")
        return BatchGradingReport(
            results=[], summary=summarize([]), errors=list(processed.errors)
        )

    graded = grade_batch(processed.results, key, total_questions)
    return BatchGradingReport(
        results=graded.results,
        summary=graded.summary,
        errors=list(processed.errors) + list(graded.errors),
    )
