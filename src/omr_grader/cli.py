# -*- coding: utf-8 -*-

"""
cli.py
Command line front end:

  omr-grader process SHEET [SHEET ...]
  omr-grader grade SHEET [SHEET ...] --answer-key key.json --total-questions N
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from .config import (
    DEFAULT_MAX_WIDTH,
    DEFAULT_OPTIONS_PER_QUESTION,
    ImageProcessingConfig,
    setup_logger,
)
from .debug import DebugCollector
from .errors import OMRError
from .pipeline import SheetFile, process_batch, run_batch
from .template import TEMPLATE_CACHE, OMRTemplate, build_default_template


# -----------------------------
# Arguments
# -----------------------------
def _add_common_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("inputs", nargs="+", help="Answer sheet images (PNG/JPG).")
    p.add_argument(
        "--output", "-o", default=None, help="Write JSON here instead of stdout."
    )

    p.add_argument(
        "--config", default=None, help="JSON file with processing thresholds."
    )
    p.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Binarization cutoff 0..255. Default: 128",
    )
    p.add_argument(
        "--min-radius", type=int, default=None, help="Min circle radius (px). Default: 10"
    )
    p.add_argument(
        "--max-radius", type=int, default=None, help="Max circle radius (px). Default: 20"
    )
    p.add_argument(
        "--grid-tolerance",
        type=float,
        default=None,
        help="Row clustering tolerance (px). Default: 20",
    )
    p.add_argument(
        "--fill-threshold",
        type=float,
        default=None,
        help="Dark fraction for a filled mark 0..1. Default: 0.5",
    )
    p.add_argument(
        "--options-per-question",
        type=int,
        default=DEFAULT_OPTIONS_PER_QUESTION,
        help="Options per question. Default: 5",
    )
    p.add_argument(
        "--max-width",
        type=int,
        default=DEFAULT_MAX_WIDTH,
        help="Downscale wider images to this width. Default: 1200",
    )
    p.add_argument(
        "--workers", type=int, default=None, help="Parallel sheets. Default: up to 8"
    )

    p.add_argument(
        "--template",
        default=None,
        help="Read marks from a marker template JSON ('default' for the built-in "
        "45-question layout) instead of searching for circles.",
    )

    p.add_argument(
        "--debug", action="store_true", help="Enable debug outputs (sidecar images)."
    )
    p.add_argument(
        "--debug-dir",
        default=None,
        help="Directory for debug outputs. Default: ./debug_out",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="omr-grader",
        description="Offline OMR answer sheet grader: reads bubble marks from sheet "
        "images and grades them against an answer key.",
    )
    sub = p.add_subparsers(dest="command")
    sub.required = True

    p_process = sub.add_parser("process", help="Read answers from answer sheet images.")
    _add_common_arguments(p_process)

    p_grade = sub.add_parser("grade", help="Read and grade answer sheet images.")
    _add_common_arguments(p_grade)
    p_grade.add_argument(
        "--answer-key",
        required=True,
        help='JSON file mapping question number to option, e.g. {"1": "3"}.',
    )
    p_grade.add_argument(
        "--total-questions", type=int, required=True, help="Questions on the sheet."
    )
    return p


def args_to_config(a: argparse.Namespace) -> ImageProcessingConfig:
    if a.config:
        base = ImageProcessingConfig.from_json_file(a.config)
    else:
        base = ImageProcessingConfig()
    cfg = base.with_overrides(
        threshold=a.threshold,
        min_circle_radius=a.min_radius,
        max_circle_radius=a.max_radius,
        grid_tolerance=a.grid_tolerance,
        fill_threshold=a.fill_threshold,
    )
    return cfg.validate()


def _load_template_arg(value: Optional[str]) -> Optional[OMRTemplate]:
    if not value:
        return None
    if value == "default":
        return build_default_template()
    return TEMPLATE_CACHE.get(value)


def _load_answer_key(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise OMRError(f"Answer key {path} must contain a JSON object")
    return data


def _write_json(payload: Dict[str, Any], output: Optional[str]) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text + "\n")
        logging.info("Output written: %s", output)
    else:
        sys.stdout.write(text + "\n")


# -----------------------------
# Entry
# -----------------------------
def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    setup_logger(args.debug)

    missing = [p for p in args.inputs if not os.path.exists(p)]
    if missing:
        for p in missing:
            logging.error("Input not found: %s", p)
        return 2

    try:
        cfg = args_to_config(args)
        template = _load_template_arg(args.template)
    except OMRError as e:
        logging.error("%s", e)
        return 2

    # template mode has no circle grid to draw
    debug = None
    if args.debug and template is None:
        debug = DebugCollector(args.debug_dir or "debug_out")

    try:
        sheets = [SheetFile.from_path(p) for p in args.inputs]

        if args.command == "process":
            report = process_batch(
                sheets,
                cfg,
                args.options_per_question,
                args.max_width,
                args.workers,
                template,
                debug,
            )
            _write_json(report.to_dict(), args.output)
        else:
            answer_key = _load_answer_key(args.answer_key)
            graded = run_batch(
                sheets,
                answer_key,
                args.total_questions,
                cfg,
                args.options_per_question,
                args.max_width,
                args.workers,
                template,
                debug,
            )
            _write_json(graded.to_dict(), args.output)

        if debug is not None:
            debug.write_report()
    except (OMRError, OSError, ValueError) as e:
        logging.exception("Failed: %s", str(e))
        return 1

    return 0
