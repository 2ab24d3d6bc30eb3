"""
tests/test_quiz_service.py — Quiz Persistence & Leaderboard Tests
==================================================================

Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

import random

import pytest
from conftest import make_account, make_family, make_question
from sqlalchemy import select
from sqlalchemy.orm import Session

from faithful_city.constants import LEADERBOARD_LIMIT
from faithful_city.database.models import QuizAttempt
from faithful_city.errors import NotFoundError
from faithful_city.services import profile_service, quiz_service


@pytest.fixture
def engine(db_engine):
    make_family(db_engine, "fam-1")
    make_account(db_engine, "acct-1", "fam-1", quiz_score=40, quiz_streak=2)
    make_question(db_engine, "q-easy", correct="Noah", difficulty="easy")
    make_question(db_engine, "q-hard", correct="Lot", difficulty="hard")
    return db_engine


def _attempts(engine) -> list[QuizAttempt]:
    with Session(engine) as session:
        return list(session.scalars(select(QuizAttempt)).all())


class TestSubmitAnswer:
    def test_correct_answer_scores_and_extends_streak(self, engine):
        result = quiz_service.submit_answer(engine, "acct-1", "fam-1", "q-hard", "Lot")

        assert result.is_correct is True
        assert result.points_earned == 30
        profile = profile_service.get_profile(engine, "acct-1")
        assert (profile.quiz_score, profile.quiz_streak) == (70, 3)

    def test_medium_answer_adds_twenty(self, engine):
        make_question(engine, "q-medium", correct="Jonah", difficulty="medium")
        quiz_service.submit_answer(engine, "acct-1", "fam-1", "q-medium", "Jonah")

        profile = profile_service.get_profile(engine, "acct-1")
        assert (profile.quiz_score, profile.quiz_streak) == (60, 3)

    def test_wrong_answer_resets_streak_keeps_score(self, engine):
        result = quiz_service.submit_answer(engine, "acct-1", "fam-1", "q-easy", "Moses")

        assert result.is_correct is False
        assert result.points_earned == 0
        assert result.correct_answer == "Noah"
        profile = profile_service.get_profile(engine, "acct-1")
        assert (profile.quiz_score, profile.quiz_streak) == (40, 0)

    def test_every_attempt_is_journaled(self, engine):
        quiz_service.submit_answer(engine, "acct-1", "fam-1", "q-easy", "Noah")
        quiz_service.submit_answer(engine, "acct-1", "fam-1", "q-easy", "David")

        attempts = _attempts(engine)
        assert len(attempts) == 2
        assert sorted((a.user_answer, a.is_correct, a.points_earned) for a in attempts) == [
            ("David", False, 0),
            ("Noah", True, 10),
        ]

    def test_unknown_question_raises(self, engine):
        with pytest.raises(NotFoundError):
            quiz_service.submit_answer(engine, "acct-1", "fam-1", "nope", "Noah")
        assert _attempts(engine) == []

    def test_unknown_account_still_journals(self, engine):
        result = quiz_service.submit_answer(engine, "ghost", None, "q-easy", "Noah")
        assert result.is_correct is True
        assert len(_attempts(engine)) == 1


class TestPickRandomQuestion:
    def test_empty_bank_returns_none(self, db_engine):
        assert quiz_service.pick_random_question(db_engine) is None

    def test_seeded_rng_is_deterministic(self, engine):
        first = quiz_service.pick_random_question(engine, random.Random(7))
        again = quiz_service.pick_random_question(engine, random.Random(7))
        assert first is not None
        assert first.id == again.id
        assert first.id in {"q-easy", "q-hard"}

    def test_carries_options(self, engine):
        question = quiz_service.pick_random_question(engine, random.Random(1))
        assert question.correct_answer in question.options
        assert len(question.options) == 4


class TestLeaderboard:
    def test_sorted_and_capped(self, db_engine):
        make_family(db_engine, "fam-1")
        for i in range(LEADERBOARD_LIMIT + 2):
            make_account(db_engine, f"acct-{i:02d}", "fam-1", quiz_score=i * 10)

        entries = quiz_service.leaderboard(db_engine, "fam-1")

        assert len(entries) == LEADERBOARD_LIMIT
        scores = [e.quiz_score for e in entries]
        assert scores == sorted(scores, reverse=True)
        assert entries[0].id == f"acct-{LEADERBOARD_LIMIT + 1:02d}"

    def test_ties_break_by_account_id(self, db_engine):
        make_family(db_engine, "fam-1")
        make_account(db_engine, "acct-b", "fam-1", quiz_score=50)
        make_account(db_engine, "acct-a", "fam-1", quiz_score=50)
        make_account(db_engine, "acct-c", "fam-1", quiz_score=90)

        assert [e.id for e in quiz_service.leaderboard(db_engine, "fam-1")] == [
            "acct-c", "acct-a", "acct-b",
        ]

    def test_family_scoped(self, db_engine):
        make_family(db_engine, "fam-1")
        make_family(db_engine, "fam-2", "Others")
        make_account(db_engine, "acct-1", "fam-1", quiz_score=10)
        make_account(db_engine, "acct-2", "fam-2", quiz_score=999)

        assert [e.id for e in quiz_service.leaderboard(db_engine, "fam-1")] == ["acct-1"]

    def test_reflects_answers(self, engine):
        quiz_service.submit_answer(engine, "acct-1", "fam-1", "q-hard", "Lot")
        (entry,) = quiz_service.leaderboard(engine, "fam-1")
        assert (entry.quiz_score, entry.quiz_streak) == (70, 3)
