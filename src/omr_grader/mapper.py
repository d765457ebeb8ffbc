# -*- coding: utf-8 -*-

"""
mapper.py
Resolve grid rows into per-question answers.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .config import DEFAULT_OPTIONS_PER_QUESTION, MULTIPLE
from .errors import ConfigError
from .models import Circle, OMRGrid, StudentAnswers


def check_options_per_question(options_per_question: int) -> int:
    if (
        isinstance(options_per_question, bool)
        or not isinstance(options_per_question, int)
        or options_per_question <= 0
    ):
        raise ConfigError(
            f"options_per_question must be a positive integer, got {options_per_question!r}"
        )
    return options_per_question


def resolve_options(options: Sequence[Circle]) -> str:
    """
    Answer token for one question group, or "" when nothing is filled.
    """
    marked = [i for i, c in enumerate(options) if c.filled]
    if len(marked) == 1:
        return str(marked[0] + 1)
    if len(marked) > 1:
        return MULTIPLE
    return ""


def map_row_to_answers(
    row: Sequence[Circle],
    options_per_question: int = DEFAULT_OPTIONS_PER_QUESTION,
    start_question_number: int = 1,
) -> Tuple[StudentAnswers, int]:
    """
    Returns:
      - answers for the question groups of this row
      - next question number after this row

    A trailing group shorter than `options_per_question` is still a question.
    """
    check_options_per_question(options_per_question)

    answers: Dict[int, str] = {}
    qnum = start_question_number
    for group in split_row(row, options_per_question):
        answer = resolve_options(group)
        if answer:
            answers[qnum] = answer
        qnum += 1
    return answers, qnum


def map_grid_to_answers(
    grid: OMRGrid, options_per_question: int = DEFAULT_OPTIONS_PER_QUESTION
) -> StudentAnswers:
    """Question numbers run on across rows."""
    answers: StudentAnswers = {}
    qnum = 1
    for row in grid:
        row_answers, qnum = map_row_to_answers(row, options_per_question, qnum)
        answers.update(row_answers)
    return answers


def count_questions(
    grid: OMRGrid, options_per_question: int = DEFAULT_OPTIONS_PER_QUESTION
) -> int:
    """Number of question groups the mapper will number for `grid`."""
    check_options_per_question(options_per_question)
    return sum(-(-len(row) // options_per_question) for row in grid)


def split_row(row: Sequence[Circle], options_per_question: int) -> List[List[Circle]]:
    return [
        list(row[i : i + options_per_question])
        for i in range(0, len(row), options_per_question)
    ]
