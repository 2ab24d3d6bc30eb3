"""
faithful_city.api.routes.quiz — Bible trivia & family leaderboard
==================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from faithful_city.api.deps import get_current_account, get_engine, require_member
from faithful_city.engine.views import AccountView, to_dict
from faithful_city.services import quiz_service

router = APIRouter(tags=["quiz"])


class AnswerSubmit(BaseModel):
    question_id: str
    answer: str = Field(max_length=300)


@router.get("/quiz/question")
def random_question(
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    """A random question, without its answer.  ``question`` is null when the bank is empty."""
    question = quiz_service.pick_random_question(engine)
    if question is None:
        return {"question": None}
    payload = to_dict(question)
    payload.pop("correct_answer")
    return {"question": payload}


@router.post("/quiz/answer")
def submit_answer(
    body: AnswerSubmit,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    result = quiz_service.submit_answer(
        engine, account.id, account.family_id, body.question_id, body.answer,
    )
    return {
        "is_correct": result.is_correct,
        "points_earned": result.points_earned,
        "correct_answer": result.correct_answer,
    }


@router.get("/families/{family_id}/leaderboard")
def get_leaderboard(
    family_id: str,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    require_member(account, family_id)
    return {"entries": [to_dict(e) for e in quiz_service.leaderboard(engine, family_id)]}
