"""Core quiz logic (bank loading, validation, grading and the session engine) shared by CLI/GUI.

Important: This module does not modify stored question/answer verbiage.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from result_sinks import ResultSink, SinkError

logger = logging.getLogger(__name__)


class QuizError(Exception):
    """Base class for quiz session errors."""


class ValidationError(QuizError, ValueError):
    pass


class EmptyAnswer(ValidationError):
    def __init__(self, message: str = "Answer must not be empty."):
        super().__init__(message)


class SessionAlreadyComplete(QuizError):
    def __init__(self, message: str = "The session is already complete; there is no question to answer."):
        super().__init__(message)


@dataclass(frozen=True)
class ExactMatch:
    """Case-insensitive match against a reference answer, ignoring surrounding whitespace."""

    reference: str

    def __post_init__(self):
        if not (self.reference or "").strip():
            raise ValueError("reference answer must not be blank")


# Grading rule variants. New kinds are added here and in evaluate().
GradingRule = Union[ExactMatch]


@dataclass(frozen=True)
class Question:
    prompt: str
    points: int
    rule: GradingRule
    qnum: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.points, bool) or not isinstance(self.points, int):
            raise ValueError(f"points must be an integer, got {self.points!r}")
        if self.points < 0:
            raise ValueError(f"points must be >= 0, got {self.points}")


def question(prompt: str, points: int, reference: str, qnum: Optional[int] = None) -> Question:
    return Question(prompt=prompt, points=points, rule=ExactMatch(reference), qnum=qnum)


DEFAULT_QUESTIONS: tuple[Question, ...] = (
    question("What is 2 + 2?\nA - 3\nB - 4\nC - 5", 5, "4", qnum=1),
    question("What is the capital of France?\nA - London\nB - Berlin\nC - Paris", 5, "Paris", qnum=2),
    question("Which planet is known as the Red Planet?\nA - Mars\nB - Venus\nC - Jupiter", 5, "Mars", qnum=3),
    question("What is the chemical symbol for water?\nA - CO2\nB - H2O\nC - O2", 5, "H2O", qnum=4),
)


class Participant:
    """Quiz taker. The name is fixed at creation; the score only grows through the session engine."""

    def __init__(self, name: str):
        name = (name or "").strip()
        if not name:
            raise ValueError("participant name must not be blank")
        self._name = name
        self._score = 0
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def score(self) -> int:
        with self._lock:
            return self._score

    def _award(self, points: int) -> int:
        with self._lock:
            self._score += points
            return self._score

    def __repr__(self) -> str:
        return f"Participant(name={self._name!r}, score={self.score})"


@dataclass(frozen=True)
class AnswerRecord:
    question: Question
    answer: str
    correct: bool


@dataclass(frozen=True)
class SubmitOutcome:
    correct: bool
    score: int
    completed: bool
    sink_warning: Optional[str] = None


def validate(raw_answer: Optional[str]) -> str:
    """Return the trimmed answer, or raise EmptyAnswer for None/blank input."""
    trimmed = (raw_answer or "").strip()
    if not trimmed:
        raise EmptyAnswer()
    return trimmed


def evaluate(question: Question, trimmed_answer: str) -> bool:
    rule = question.rule
    if isinstance(rule, ExactMatch):
        # trimming and case folding only; inner whitespace is significant
        return trimmed_answer.strip().casefold() == rule.reference.strip().casefold()
    raise TypeError(f"Unsupported grading rule: {type(rule).__name__}")


def expected_answer(question: Question) -> str:
    """Human-readable form of what the grading rule accepts."""
    rule = question.rule
    if isinstance(rule, ExactMatch):
        return rule.reference
    raise TypeError(f"Unsupported grading rule: {type(rule).__name__}")


class QuizSession:
    """Walks one participant through a fixed question bank, in order, exactly once.

    The session is Active while ``position < total_questions`` and Completed once the
    last question has been graded. Completion invokes the result sink (if any) once.
    """

    def __init__(self, questions: Sequence[Question], participant: Participant, sink: Optional[ResultSink] = None):
        self._questions = tuple(questions)
        if not self._questions:
            raise ValueError("Question bank contains 0 questions.")
        self._participant = participant
        self._sink = sink
        self._position = 0
        self._history: list[AnswerRecord] = []

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    @property
    def participant(self) -> Participant:
        return self._participant

    @property
    def position(self) -> int:
        return self._position

    @property
    def total_questions(self) -> int:
        return len(self._questions)

    @property
    def total_possible(self) -> int:
        return sum(q.points for q in self._questions)

    @property
    def is_completed(self) -> bool:
        return self._position >= len(self._questions)

    @property
    def history(self) -> tuple[AnswerRecord, ...]:
        return tuple(self._history)

    @property
    def correct_count(self) -> int:
        return sum(1 for r in self._history if r.correct)

    def current_question(self) -> Optional[Question]:
        if self.is_completed:
            return None
        return self._questions[self._position]

    def submit_answer(self, raw_answer: Optional[str]) -> SubmitOutcome:
        if self.is_completed:
            raise SessionAlreadyComplete()

        answer = validate(raw_answer)
        q = self._questions[self._position]

        correct = evaluate(q, answer)
        score = self._participant._award(q.points) if correct else self._participant.score

        self._history.append(AnswerRecord(question=q, answer=answer, correct=correct))
        self._position += 1
        logger.debug(
            "Question %d/%d answered by %s: %s",
            self._position,
            len(self._questions),
            self._participant.name,
            "correct" if correct else "incorrect",
        )

        if not self.is_completed:
            return SubmitOutcome(correct=correct, score=score, completed=False)

        warning = self._record_result(score)
        return SubmitOutcome(correct=correct, score=score, completed=True, sink_warning=warning)

    def _record_result(self, score: int) -> Optional[str]:
        total = self.total_possible
        logger.info("Session complete for %s: %d/%d", self._participant.name, score, total)
        if self._sink is None:
            return None
        try:
            self._sink.record(self._participant.name, score, total)
        except SinkError as e:
            # completion stands; the failure is only reported
            logger.warning("Could not record result for %s: %s", self._participant.name, e)
            return f"Result was not saved: {e}"
        except Exception as e:
            logger.warning("Result sink %s failed for %s: %r", type(self._sink).__name__, self._participant.name, e)
            return f"Result was not saved: {type(e).__name__}: {e}"
        return None


def load_questions(db_path: Path) -> list[Question]:
    """Load the whole question bank from a database built by build_db.py, in question-number order."""
    with sqlite3.connect(str(db_path)) as conn:
        conn.row_factory = sqlite3.Row
        rows = conn.execute(
            "SELECT qnum, prompt, answer, points FROM questions ORDER BY qnum"
        ).fetchall()

    if not rows:
        raise ValueError("Database contains 0 questions.")

    return [
        question(r["prompt"], int(r["points"]), r["answer"], qnum=r["qnum"])
        for r in rows
    ]


def extract_mc_options(prompt: str) -> list[tuple[str, str]]:
    """Extract options from prompt lines like:
      A - BOOTP
      B - SMB
      C - DHCP
    Returns: [("A","BOOTP"), ...]
    """
    opts: list[tuple[str, str]] = []
    for line in (prompt or "").splitlines():
        m = re.match(r"^\s*([A-Z])\s*[-–]\s*(.+?)\s*$", line)
        if m:
            opts.append((m.group(1).upper(), m.group(2)))
    return opts


def resolve_option_letter(question: Question, raw_answer: Optional[str]) -> Optional[str]:
    """Map a bare option letter ("b") to that option's text; anything else is returned unchanged.

    A letter that is itself the accepted answer is left alone.
    """
    ua = (raw_answer or "").strip()
    if len(ua) != 1 or not ua.isalpha():
        return raw_answer
    if evaluate(question, ua):
        return raw_answer
    for letter, text in extract_mc_options(question.prompt):
        if letter == ua.upper():
            return text
    return raw_answer
