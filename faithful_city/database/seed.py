"""
faithful_city.database.seed — Starter Quiz Bank
================================================

A small set of questions seeded on first startup so the quiz is playable
before anyone curates a bank.

Idempotent: a question is only inserted when no row with the same text
exists.  Questions added or edited later are never overwritten.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from faithful_city.database.models import QuizQuestion

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Starter catalogue: (question, correct, options, difficulty, reference)
# ---------------------------------------------------------------------------
STARTER_QUESTIONS: list[tuple[str, str, list[str], str, str]] = [
    (
        "Who built the ark?",
        "Noah",
        ["Moses", "Noah", "Abraham", "David"],
        "easy",
        "Genesis 6:14",
    ),
    (
        "How many days and nights did it rain during the flood?",
        "40",
        ["7", "12", "40", "100"],
        "easy",
        "Genesis 7:12",
    ),
    (
        "Who was swallowed by a great fish?",
        "Jonah",
        ["Jonah", "Elijah", "Peter", "Daniel"],
        "easy",
        "Jonah 1:17",
    ),
    (
        "Which king wrote most of the Psalms?",
        "David",
        ["Solomon", "Saul", "David", "Hezekiah"],
        "medium",
        "Psalm 23",
    ),
    (
        "On which road was Saul converted?",
        "The road to Damascus",
        [
            "The road to Emmaus",
            "The road to Damascus",
            "The road to Jericho",
            "The road to Gaza",
        ],
        "medium",
        "Acts 9:3",
    ),
    (
        "Who interpreted Nebuchadnezzar's dream of the statue?",
        "Daniel",
        ["Joseph", "Daniel", "Ezekiel", "Jeremiah"],
        "hard",
        "Daniel 2:31-45",
    ),
    (
        "What was the name of Abraham's nephew who settled in Sodom?",
        "Lot",
        ["Laban", "Lot", "Nahor", "Terah"],
        "hard",
        "Genesis 13:12",
    ),
]


def seed_quiz_questions(engine: Engine) -> int:
    """Insert any missing starter questions.  Returns the number inserted."""
    inserted = 0
    with Session(engine) as session:
        existing = set(session.scalars(select(QuizQuestion.question)).all())
        for question, correct, options, difficulty, reference in STARTER_QUESTIONS:
            if question in existing:
                continue
            session.add(QuizQuestion(
                question=question,
                correct_answer=correct,
                options=list(options),
                difficulty=difficulty,
                bible_reference=reference,
            ))
            inserted += 1
        session.commit()

    if inserted:
        logger.info("Seeded %d starter quiz questions", inserted)
    return inserted
