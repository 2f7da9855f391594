import random
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from examhall.errors import CapacityError
from examhall.models.question_model import BankQuestion


async def _get_bank_questions(session: AsyncSession, exam_id: UUID) -> List[BankQuestion]:
    qstmt = (
        select(BankQuestion)
        .where(BankQuestion.exam_id == exam_id, BankQuestion.is_bank_question == True)
        .order_by(BankQuestion.display_order, BankQuestion.id)
    )
    qres = await session.execute(qstmt)
    return list(qres.scalars().all())


async def _get_questions_for_exam(session: AsyncSession, exam_id: UUID) -> List[BankQuestion]:
    """Every question of the exam, bank-flagged or not."""
    qres = await session.execute(select(BankQuestion).where(BankQuestion.exam_id == exam_id))
    return list(qres.scalars().all())


async def _get_questions_by_ids(session: AsyncSession, qids: List[UUID]) -> List[BankQuestion]:
    if not qids:
        return []
    qres = await session.execute(select(BankQuestion).where(BankQuestion.id.in_(qids)))
    # Preserve order from qids
    qmap = {q.id: q for q in qres.scalars().all()}
    return [qmap[qid] for qid in qids if qid in qmap]


async def select_questions(
    session: AsyncSession,
    exam_id: UUID,
    required_count: int,
    rng: Optional[random.Random] = None,
) -> List[BankQuestion]:
    """Draw `required_count` distinct bank questions for one attempt.

    Raises CapacityError when the bank is smaller than the sample size.
    """
    rng = rng or random.Random()
    available = await _get_bank_questions(session, exam_id)
    if len(available) < required_count:
        raise CapacityError(
            f"Not enough questions in the bank ({len(available)}) for this exam (requires {required_count})."
        )
    return rng.sample(available, required_count)


def _sanitize_question(q: BankQuestion, display_order: int) -> dict:
    # remove correct option key and per-option correctness to prevent leaking
    return {
        "id": q.id,
        "question_text": q.question_text,
        "question_type": q.question_type.value,
        "marks": q.marks,
        "display_order": display_order,
        "options": [
            {"option_key": opt.option_key, "option_text": opt.option_text}
            for opt in q.options
        ],
    }
