# -*- coding: utf-8 -*-

"""
models.py
Value types passed between pipeline stages.

Everything here is created once per sheet and never mutated afterwards.
`to_dict()` uses the camelCase names of the JSON interface.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import numpy as np


# Single-channel uint8 image, row-major, read-only once produced.
PixelBuffer = np.ndarray

# question number (1-based) -> option token ("1".."N" or "MULTIPLE")
StudentAnswers = Dict[int, str]
AnswerKey = Dict[int, str]


# -----------------------------
# Detection
# -----------------------------
@dataclass(frozen=True)
class Circle:
    x: int  # center, pixels
    y: int
    radius: int
    filled: bool


# Rows top->bottom, each row left->right.
OMRGrid = List[List[Circle]]


@dataclass(frozen=True)
class PreprocessedImage:
    pixels: PixelBuffer  # binarized (0 / 255)
    gray: PixelBuffer
    resized: bool = False

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class GridValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class GridStructure:
    total_rows: int
    total_circles: int
    average_circles_per_row: float
    estimated_questions: int
    options_per_question: int


# -----------------------------
# Processing results
# -----------------------------
def answers_to_dict(answers: Mapping[int, str]) -> Dict[str, str]:
    return {str(q): a for q, a in sorted(answers.items())}


@dataclass(frozen=True)
class ProcessOutcome:
    answers: StudentAnswers
    total_detected: int
    circle_count: int = 0
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answers": answers_to_dict(self.answers),
            "totalDetected": self.total_detected,
        }


@dataclass(frozen=True)
class OMRProcessResult:
    file_name: str
    answers: StudentAnswers
    total_detected: int
    processed_at: datetime
    circle_count: int = 0
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fileName": self.file_name,
            "answers": answers_to_dict(self.answers),
            "totalDetected": self.total_detected,
            "processedAt": self.processed_at.isoformat(),
            "circleCount": self.circle_count,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ProcessingError:
    file_name: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"fileName": self.file_name, "error": self.error}


@dataclass(frozen=True)
class BatchProcessReport:
    results: List[OMRProcessResult]
    errors: List[ProcessingError]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "errors": [e.to_dict() for e in self.errors],
            "summary": {
                "total": len(self.results) + len(self.errors),
                "succeeded": len(self.results),
                "failed": len(self.errors),
            },
        }


# -----------------------------
# Grading results
# -----------------------------
@dataclass(frozen=True)
class QuestionDetail:
    question_number: int
    student_answer: Optional[str]
    correct_answer: Optional[str]
    is_correct: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionNumber": self.question_number,
            "studentAnswer": self.student_answer,
            "correctAnswer": self.correct_answer,
            "isCorrect": self.is_correct,
        }


@dataclass(frozen=True)
class GradingResult:
    file_name: str
    student_answers: StudentAnswers
    correct_answers: AnswerKey
    score: int
    total_questions: int
    correct_count: int
    wrong_count: int
    unanswered_count: int
    details: List[QuestionDetail]
    missing_key_questions: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fileName": self.file_name,
            "studentAnswers": answers_to_dict(self.student_answers),
            "correctAnswers": answers_to_dict(self.correct_answers),
            "score": self.score,
            "totalQuestions": self.total_questions,
            "correctCount": self.correct_count,
            "wrongCount": self.wrong_count,
            "unansweredCount": self.unanswered_count,
            "details": [d.to_dict() for d in self.details],
            "missingKeyQuestions": list(self.missing_key_questions),
        }


@dataclass(frozen=True)
class BatchSummary:
    total_students: int
    average_score: float
    highest_score: Optional[int]
    lowest_score: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalStudents": self.total_students,
            "averageScore": self.average_score,
            "highestScore": self.highest_score,
            "lowestScore": self.lowest_score,
        }


@dataclass(frozen=True)
class BatchGradingReport:
    results: List[GradingResult]
    summary: BatchSummary
    errors: List[ProcessingError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary.to_dict(),
            "errors": [e.to_dict() for e in self.errors],
        }
