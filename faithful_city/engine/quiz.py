"""
faithful_city.engine.quiz — Grading, Score Transitions, Round State
====================================================================

Pure logic, no DB I/O.  :mod:`faithful_city.services.quiz_service` feeds it
rows and persists what it returns.

Scoring rules:
  * A correct answer earns the difficulty's points (easy 10, medium 20,
    hard 30) and extends the streak by one.
  * A wrong answer earns nothing, leaves the score alone, and resets the
    streak to zero.
  * Answers are compared as exact strings; "noah" does not match "Noah".
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from faithful_city.constants import POINTS_BY_DIFFICULTY
from faithful_city.engine.views import QuestionView

__all__ = [
    "AnswerResult",
    "QuizPhase",
    "QuizRound",
    "QuizStateError",
    "ScoreState",
    "apply_answer",
    "grade_answer",
    "points_for",
]


def points_for(difficulty: str) -> int:
    """Points awarded for a correct answer at *difficulty*.

    Raises
    ------
    ValueError
        If *difficulty* is not a known tier.
    """
    try:
        return POINTS_BY_DIFFICULTY[difficulty]
    except KeyError:
        raise ValueError(
            f"Unknown difficulty {difficulty!r}. "
            f"Expected one of: {', '.join(POINTS_BY_DIFFICULTY)}"
        ) from None


# ---------------------------------------------------------------------------
# Grading
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AnswerResult:
    is_correct: bool
    points_earned: int
    correct_answer: str


def grade_answer(correct_answer: str, difficulty: str, chosen: str) -> AnswerResult:
    is_correct = chosen == correct_answer
    return AnswerResult(
        is_correct=is_correct,
        points_earned=points_for(difficulty) if is_correct else 0,
        correct_answer=correct_answer,
    )


@dataclass(frozen=True, slots=True)
class ScoreState:
    score: int
    streak: int


def apply_answer(state: ScoreState, result: AnswerResult) -> ScoreState:
    """Next (score, streak) after *result*."""
    if result.is_correct:
        return ScoreState(score=state.score + result.points_earned, streak=state.streak + 1)
    return ScoreState(score=state.score, streak=0)


# ---------------------------------------------------------------------------
# Round state machine (client-local, never persisted)
# ---------------------------------------------------------------------------
class QuizPhase(enum.StrEnum):
    AWAITING_QUESTION = "awaiting_question"
    QUESTION_SHOWN = "question_shown"
    ANSWER_SUBMITTED = "answer_submitted"


class QuizStateError(RuntimeError):
    """An action was attempted in a phase that does not allow it."""


class QuizRound:
    """One player's walk through questions.

    ``AWAITING_QUESTION → QUESTION_SHOWN → ANSWER_SUBMITTED → advance() →
    AWAITING_QUESTION``.  A submitted round stays terminal until the player
    advances.
    """

    def __init__(self) -> None:
        self.phase = QuizPhase.AWAITING_QUESTION
        self.question: QuestionView | None = None
        self.result: AnswerResult | None = None

    def show(self, question: QuestionView) -> None:
        if self.phase is not QuizPhase.AWAITING_QUESTION:
            raise QuizStateError(f"Cannot show a question while {self.phase}")
        self.question = question
        self.result = None
        self.phase = QuizPhase.QUESTION_SHOWN

    def submit(self, chosen: str) -> AnswerResult:
        if self.phase is not QuizPhase.QUESTION_SHOWN or self.question is None:
            raise QuizStateError(f"Cannot submit an answer while {self.phase}")
        self.result = grade_answer(
            self.question.correct_answer, self.question.difficulty, chosen,
        )
        self.phase = QuizPhase.ANSWER_SUBMITTED
        return self.result

    def advance(self) -> None:
        if self.phase is not QuizPhase.ANSWER_SUBMITTED:
            raise QuizStateError(f"Cannot advance while {self.phase}")
        self.question = None
        self.result = None
        self.phase = QuizPhase.AWAITING_QUESTION
