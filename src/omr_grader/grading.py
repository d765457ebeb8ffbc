# -*- coding: utf-8 -*-

"""
grading.py
Compare mapped answers with an answer key and summarize a batch.

Scores are rounded half-up (1 correct of 8 -> 13), not with Python's
round-half-even.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .config import MULTIPLE, MULTIPLE_MARKING_LABEL
from .errors import InvalidGradingInputError, OMRError
from .models import (
    AnswerKey,
    BatchGradingReport,
    BatchSummary,
    GradingResult,
    OMRProcessResult,
    ProcessingError,
    QuestionDetail,
    StudentAnswers,
)


ProcessedSheet = Union[OMRProcessResult, Mapping[str, Any]]


# -----------------------------
# Input normalization
# -----------------------------
def normalize_answers(
    answers: Optional[Mapping[Any, Any]], what: str = "answers"
) -> Dict[int, str]:
    """
    Accept JSON-style mappings ("1" -> "3") and return {1: "3"}.
    Empty values are dropped (they mean "unanswered").
    """
    if answers is None:
        return {}
    if not isinstance(answers, Mapping):
        raise InvalidGradingInputError(
            f"{what} must be a mapping, got {type(answers).__name__}"
        )

    out: Dict[int, str] = {}
    for key, value in answers.items():
        try:
            qnum = int(key)
        except (TypeError, ValueError):
            raise InvalidGradingInputError(f"Invalid question number in {what}: {key!r}")
        if qnum <= 0:
            raise InvalidGradingInputError(
                f"Question numbers in {what} must be >= 1, got {qnum}"
            )
        if value is None or value == "":
            continue
        out[qnum] = str(value)
    return out


def validate_grading_input(
    answer_key: Optional[Mapping[Any, Any]], total_questions: Optional[int]
) -> AnswerKey:
    """Check key and question count before any sheet is graded."""
    if not answer_key:
        raise InvalidGradingInputError("Answer key is missing or empty.")
    if isinstance(total_questions, bool) or not isinstance(total_questions, int):
        raise InvalidGradingInputError(
            f"total_questions must be an integer, got {total_questions!r}"
        )
    if total_questions <= 0:
        raise InvalidGradingInputError(
            f"total_questions must be positive, got {total_questions}"
        )

    key = normalize_answers(answer_key, what="answer key")
    if not key:
        raise InvalidGradingInputError("Answer key is missing or empty.")
    return key


def round_half_up_percent(correct: int, total: int) -> int:
    # floor(correct * 100 / total + 0.5) in integer arithmetic
    return (200 * correct + total) // (2 * total)


# -----------------------------
# Per-sheet grading
# -----------------------------
def grade_answers(
    file_name: str,
    answers: StudentAnswers,
    answer_key: AnswerKey,
    total_questions: int,
) -> GradingResult:
    if total_questions <= 0:
        raise InvalidGradingInputError(
            f"total_questions must be positive, got {total_questions}"
        )

    details: List[QuestionDetail] = []
    missing_key: List[int] = []
    correct = wrong = unanswered = 0

    for qnum in range(1, total_questions + 1):
        expected = answer_key.get(qnum)
        given = answers.get(qnum)
        if expected is None:
            missing_key.append(qnum)

        is_correct = False
        if given is None:
            unanswered += 1
        elif given == MULTIPLE:
            wrong += 1
        elif expected is not None and given == expected:
            is_correct = True
            correct += 1
        else:
            wrong += 1

        details.append(
            QuestionDetail(
                question_number=qnum,
                student_answer=MULTIPLE_MARKING_LABEL if given == MULTIPLE else given,
                correct_answer=expected,
                is_correct=is_correct,
            )
        )

    if missing_key:
        logging.warning(
            "%s: answer key has no entry for question(s) %s.",
            file_name,
            ", ".join(str(q) for q in missing_key),
        )

    return GradingResult(
        file_name=file_name,
        student_answers=dict(answers),
        correct_answers=dict(answer_key),
        score=round_half_up_percent(correct, total_questions),
        total_questions=total_questions,
        correct_count=correct,
        wrong_count=wrong,
        unanswered_count=unanswered,
        details=details,
        missing_key_questions=missing_key,
    )


# -----------------------------
# Batch
# -----------------------------
def summarize(results: Sequence[GradingResult]) -> BatchSummary:
    if not results:
        return BatchSummary(
            total_students=0, average_score=0.0, highest_score=None, lowest_score=None
        )
    scores = [r.score for r in results]
    return BatchSummary(
        total_students=len(results),
        average_score=sum(scores) / float(len(scores)),
        highest_score=max(scores),
        lowest_score=min(scores),
    )


def _unpack_sheet(sheet: ProcessedSheet, index: int) -> Tuple[str, Dict[int, str]]:
    if isinstance(sheet, OMRProcessResult):
        return sheet.file_name, normalize_answers(sheet.answers)
    if not isinstance(sheet, Mapping):
        raise InvalidGradingInputError(
            f"Sheet #{index + 1} must be a mapping, got {type(sheet).__name__}"
        )

    file_name = sheet.get("fileName", sheet.get("file_name"))
    if not file_name:
        raise InvalidGradingInputError(f"Sheet #{index + 1} has no file name")
    if "answers" not in sheet:
        raise InvalidGradingInputError(f"{file_name}: missing answers")
    return str(file_name), normalize_answers(sheet["answers"])


def _sheet_label(sheet: ProcessedSheet, index: int) -> str:
    if isinstance(sheet, OMRProcessResult):
        return sheet.file_name
    if isinstance(sheet, Mapping):
        name = sheet.get("fileName", sheet.get("file_name"))
        if name:
            return str(name)
    return f"sheet-{index + 1}"


def grade_batch(
    processed: Sequence[ProcessedSheet],
    answer_key: Optional[Mapping[Any, Any]],
    total_questions: int,
) -> BatchGradingReport:
    if not processed:
        raise InvalidGradingInputError("No answer sheets to grade.")
    key = validate_grading_input(answer_key, total_questions)

    results: List[GradingResult] = []
    errors: List[ProcessingError] = []
    for i, sheet in enumerate(processed):
        try:
            file_name, answers = _unpack_sheet(sheet, i)
            results.append(grade_answers(file_name, answers, key, total_questions))
        except OMRError as e:
            label = _sheet_label(sheet, i)
            logging.warning("Grading failed for %s: %s", label, e)
            errors.append(ProcessingError(file_name=label, error=str(e)))

    summary = summarize(results)
    logging.info(
        "Graded %d sheet(s), %d failed; average score %.1f.",
        len(results),
        len(errors),
        summary.average_score,
    )
    return BatchGradingReport(results=results, summary=summary, errors=errors)


def grade(
    processed: Sequence[ProcessedSheet],
    answer_key: Optional[Mapping[Any, Any]],
    total_questions: int,
) -> BatchGradingReport:
    """Entry point: grade processed sheets against `answer_key`."""
    return grade_batch(processed, answer_key, total_questions)
