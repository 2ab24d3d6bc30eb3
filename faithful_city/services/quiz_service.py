"""
faithful_city.services.quiz_service — Answers, Scoring & Leaderboard
=====================================================================

Grading and score transitions come from :mod:`faithful_city.engine.quiz`;
this module persists them.

Known race: the score/streak update after a correct answer is a read in one
statement and a write in the next, outside the attempt's transaction.  Two
answers from the same account landing together can lose an increment.
Closing it needs an atomic ``UPDATE … SET quiz_score = quiz_score + :pts``.
"""

from __future__ import annotations

import logging
import random

from sqlalchemy import select

from faithful_city.constants import LEADERBOARD_LIMIT, QUESTION_POOL_SIZE
from faithful_city.database.engine import get_session
from faithful_city.database.models import Account, QuizAttempt, QuizQuestion
from faithful_city.engine.changefeed import notify_change
from faithful_city.engine.quiz import AnswerResult, ScoreState, apply_answer, grade_answer
from faithful_city.engine.views import LeaderboardEntry, QuestionView
from faithful_city.errors import NotFoundError

logger = logging.getLogger(__name__)


def pick_random_question(engine, rng: random.Random | None = None) -> QuestionView | None:
    """Pick uniformly among the first page of questions the DB returns.

    Not a uniform sample of the whole bank: only the first
    :data:`QUESTION_POOL_SIZE` rows are candidates.
    """
    with get_session(engine) as session:
        rows = session.scalars(select(QuizQuestion).limit(QUESTION_POOL_SIZE)).all()
        if not rows:
            return None
        chosen = (rng or random).choice(rows)
        return QuestionView.from_row(chosen)


def submit_answer(
    engine,
    account_id: str,
    family_id: str | None,
    question_id: str,
    chosen_option: str,
) -> AnswerResult:
    """Grade *chosen_option*, journal the attempt, and update score/streak.

    Raises
    ------
    NotFoundError
        If the question does not exist.
    """
    with get_session(engine) as session:
        question = session.get(QuizQuestion, question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found")
        result = grade_answer(question.correct_answer, question.difficulty, chosen_option)
        session.add(QuizAttempt(
            account_id=account_id,
            family_id=family_id,
            question_id=question_id,
            user_answer=chosen_option,
            is_correct=result.is_correct,
            points_earned=result.points_earned,
        ))

    if result.is_correct:
        _apply_correct(engine, account_id, result)
    else:
        _reset_streak(engine, account_id)
    return result


def _apply_correct(engine, account_id: str, result: AnswerResult) -> None:
    with get_session(engine) as session:
        row = session.execute(
            select(Account.quiz_score, Account.quiz_streak, Account.family_id)
            .where(Account.id == account_id)
        ).first()
    if row is None:
        logger.warning("Correct answer from unknown account %s; score not updated", account_id)
        return

    nxt = apply_answer(ScoreState(score=row.quiz_score, streak=row.quiz_streak), result)
    with get_session(engine) as session:
        account = session.get(Account, account_id)
        if account is None:
            return
        account.quiz_score = nxt.score
        account.quiz_streak = nxt.streak
        notify_change(session, "accounts", "UPDATE", family_id=row.family_id, row_id=account_id)
    logger.debug("Account %s score → %d (streak %d)", account_id, nxt.score, nxt.streak)


def _reset_streak(engine, account_id: str) -> None:
    with get_session(engine) as session:
        account = session.get(Account, account_id)
        if account is None:
            return
        account.quiz_streak = 0
        notify_change(
            session, "accounts", "UPDATE", family_id=account.family_id, row_id=account_id,
        )


def leaderboard(engine, family_id: str) -> list[LeaderboardEntry]:
    """Top family members by score.  Ties go to the lower account id."""
    with get_session(engine) as session:
        rows = session.execute(
            select(Account.id, Account.display_name, Account.quiz_score, Account.quiz_streak)
            .where(Account.family_id == family_id)
            .order_by(Account.quiz_score.desc(), Account.id)
            .limit(LEADERBOARD_LIMIT)
        ).all()
        return [
            LeaderboardEntry(
                id=r.id,
                display_name=r.display_name,
                quiz_score=r.quiz_score,
                quiz_streak=r.quiz_streak,
            )
            for r in rows
        ]
