"""
tests/test_quiz_engine.py — Pure Quiz Logic Tests
==================================================

Grading, score/streak transitions, and the round state machine.  No DB.
"""

from __future__ import annotations

import pytest

from faithful_city.engine.quiz import (
    AnswerResult,
    QuizPhase,
    QuizRound,
    QuizStateError,
    ScoreState,
    apply_answer,
    grade_answer,
    points_for,
)
from faithful_city.engine.views import QuestionView


def _question(difficulty: str = "medium") -> QuestionView:
    return QuestionView(
        id="q-1",
        question="Who was swallowed by a great fish?",
        correct_answer="Jonah",
        options=["Jonah", "Peter", "Paul", "Elijah"],
        difficulty=difficulty,
        bible_reference="Jonah 1:17",
    )


class TestPoints:
    @pytest.mark.parametrize("difficulty, points", [("easy", 10), ("medium", 20), ("hard", 30)])
    def test_point_table(self, difficulty, points):
        assert points_for(difficulty) == points

    def test_unknown_difficulty(self):
        with pytest.raises(ValueError, match="Unknown difficulty"):
            points_for("legendary")


class TestGrading:
    def test_correct_answer_earns_points(self):
        result = grade_answer("Jonah", "hard", "Jonah")
        assert result == AnswerResult(is_correct=True, points_earned=30, correct_answer="Jonah")

    def test_wrong_answer_earns_nothing(self):
        result = grade_answer("Jonah", "hard", "Peter")
        assert result.is_correct is False
        assert result.points_earned == 0
        assert result.correct_answer == "Jonah"

    def test_comparison_is_exact(self):
        assert grade_answer("Jonah", "easy", "jonah").is_correct is False
        assert grade_answer("Jonah", "easy", "Jonah ").is_correct is False


class TestApplyAnswer:
    def test_correct_extends_streak(self):
        nxt = apply_answer(ScoreState(40, 2), grade_answer("A", "medium", "A"))
        assert nxt == ScoreState(score=60, streak=3)

    def test_wrong_resets_streak_only(self):
        nxt = apply_answer(ScoreState(40, 2), grade_answer("A", "medium", "B"))
        assert nxt == ScoreState(score=40, streak=0)

    def test_score_never_decreases(self):
        state = ScoreState(0, 0)
        for chosen in ["A", "B", "A", "A", "C", "A"]:
            nxt = apply_answer(state, grade_answer("A", "easy", chosen))
            assert nxt.score >= state.score
            state = nxt
        assert state == ScoreState(score=40, streak=1)


class TestQuizRound:
    def test_full_cycle(self):
        rnd = QuizRound()
        assert rnd.phase is QuizPhase.AWAITING_QUESTION

        rnd.show(_question())
        assert rnd.phase is QuizPhase.QUESTION_SHOWN

        result = rnd.submit("Jonah")
        assert result.points_earned == 20
        assert rnd.phase is QuizPhase.ANSWER_SUBMITTED
        assert rnd.result is result

        rnd.advance()
        assert rnd.phase is QuizPhase.AWAITING_QUESTION
        assert rnd.question is None
        assert rnd.result is None

    def test_cannot_submit_twice(self):
        rnd = QuizRound()
        rnd.show(_question())
        rnd.submit("Peter")
        with pytest.raises(QuizStateError):
            rnd.submit("Jonah")

    def test_cannot_submit_without_question(self):
        with pytest.raises(QuizStateError):
            QuizRound().submit("Jonah")

    def test_cannot_show_over_unanswered_question(self):
        rnd = QuizRound()
        rnd.show(_question())
        with pytest.raises(QuizStateError):
            rnd.show(_question("easy"))

    def test_cannot_advance_before_submitting(self):
        rnd = QuizRound()
        rnd.show(_question())
        with pytest.raises(QuizStateError):
            rnd.advance()
