import logging
import random
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from examhall import config
from examhall.errors import (
    ExamHallError, AuthorizationError, ConflictError, InternalError, NotFoundError, ValidationError,
)
from examhall.models.attempt_model import ExamAttempt, AttemptQuestion, StudentAnswer
from examhall.models.exam_model import ExamStatus
from examhall.models.exam_session_model import ExamSession
from examhall.models.question_model import BankQuestion
from .access_service import Principal, is_exam_manager
from .eligibility_service import check_eligibility
from .exam_service import utcnow, _to_naive_utc, is_past_session_end, _exam_to_metadata_dict, _session_window_dict
from .grading_service import aggregate_score
from .question_selector import select_questions, _sanitize_question, _get_questions_for_exam, _get_questions_by_ids

logger = logging.getLogger(__name__)


def calculate_time_used(start_time: Optional[datetime], end_time: Optional[datetime]) -> Optional[int]:
    if not start_time or not end_time:
        return None
    return round((end_time - start_time).total_seconds())


async def get_attempt(session: AsyncSession, attempt_id: UUID) -> ExamAttempt:
    # state changes go through conditional UPDATEs, so always read the current row
    stmt = select(ExamAttempt).where(ExamAttempt.id == attempt_id).execution_options(populate_existing=True)
    attempt = (await session.execute(stmt)).scalar_one_or_none()
    if attempt is None:
        raise NotFoundError("Exam attempt not found.")
    return attempt


async def _get_presented_question_ids(session: AsyncSession, attempt_id: UUID) -> List[UUID]:
    stmt = (
        select(AttemptQuestion.question_id)
        .where(AttemptQuestion.attempt_id == attempt_id)
        .order_by(AttemptQuestion.display_order)
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def get_evaluated_questions(session: AsyncSession, attempt: ExamAttempt) -> List[BankQuestion]:
    """Questions an attempt is scored against.

    With SCORING_SCOPE=bank every question of the exam counts. Otherwise only the
    questions presented at start count, falling back to the bank for attempts
    that have no presented set recorded.
    """
    if config.SCORING_SCOPE != "bank":
        qids = await _get_presented_question_ids(session, attempt.id)
        if qids:
            return await _get_questions_by_ids(session, qids)
    return await _get_questions_for_exam(session, attempt.exam_id)


async def get_answers_by_question(session: AsyncSession, attempt_id: UUID) -> Dict[UUID, StudentAnswer]:
    res = await session.execute(select(StudentAnswer).where(StudentAnswer.attempt_id == attempt_id))
    return {a.question_id: a for a in res.scalars().all()}


async def start_attempt(
    session: AsyncSession,
    student_id: UUID,
    exam_session_id: UUID,
    client_ip: Optional[str] = None,
    client_user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> dict:
    now = _to_naive_utc(now) or utcnow()
    try:
        ctx = await check_eligibility(session, student_id, exam_session_id, now=now)
        exam = ctx.exam

        if not exam.questions_to_attempt or exam.questions_to_attempt < 1:
            raise ValidationError("This exam has no questions to attempt.")
        questions = await select_questions(session, exam.id, exam.questions_to_attempt, rng=rng)

        attempt = ExamAttempt(
            student_id=student_id,
            exam_id=exam.id,
            exam_session_id=exam_session_id,
            start_time=now,
            ip_address=client_ip,
            user_agent=client_user_agent,
        )
        session.add(attempt)
        try:
            await session.flush()
            for order, q in enumerate(questions, start=1):
                session.add(AttemptQuestion(attempt_id=attempt.id, question_id=q.id, display_order=order))
            await session.commit()
        except IntegrityError:
            # a concurrent start for the same student and session won the race
            await session.rollback()
            logger.warning(
                "Concurrent attempt start rejected for student_id=%s exam_session_id=%s",
                str(student_id), str(exam_session_id),
            )
            raise ConflictError("You already have an active attempt for this exam session. Multiple attempts not allowed.")

        logger.info("Attempt %s started by student_id=%s for exam_id=%s", attempt.id, student_id, exam.id)

        return {
            "attempt_id": attempt.id,
            "exam": _exam_to_metadata_dict(exam),
            "session_window": _session_window_dict(ctx.exam_session),
            "attempt_start_time": attempt.start_time,
            "questions": [_sanitize_question(q, order) for order, q in enumerate(questions, start=1)],
        }
    except ExamHallError:
        raise
    except Exception as e:
        await session.rollback()
        logger.exception(
            "Error starting exam attempt for student_id=%s exam_session_id=%s: %s",
            str(student_id), str(exam_session_id), e,
        )
        raise InternalError("Could not start exam attempt.") from e


async def finalize_attempt(session: AsyncSession, attempt: ExamAttempt, now: datetime, auto_submit: bool) -> dict:
    """Close an open attempt and store its auto-graded score. The caller commits.

    The conditional update only matches an unsubmitted row, so of two racing
    submissions exactly one succeeds and the other gets a ConflictError.
    """
    questions = await get_evaluated_questions(session, attempt)
    answers = await get_answers_by_question(session, attempt.id)
    summary = aggregate_score(questions, answers)

    res = await session.execute(
        update(ExamAttempt)
        .where(ExamAttempt.id == attempt.id, ExamAttempt.is_submitted == False)
        .values(
            end_time=now,
            time_used_seconds=calculate_time_used(attempt.start_time, now),
            score_achieved=summary.score_achieved,
            is_submitted=True,
            is_graded=summary.is_graded,
            is_auto_submitted=auto_submit,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        raise ConflictError("Exam already submitted.")

    return {
        "message": (
            "Exam time ended. Attempt auto-submitted successfully."
            if auto_submit else "Exam attempt submitted successfully."
        ),
        "attempt_id": attempt.id,
        "score_achieved": summary.score_achieved,
        "is_graded": summary.is_graded,
        "requires_manual_grading": summary.requires_manual_grading,
    }


async def submit_attempt(
    session: AsyncSession,
    attempt_id: UUID,
    student_id: UUID,
    auto_submit: bool = False,
    now: Optional[datetime] = None,
) -> dict:
    now = _to_naive_utc(now) or utcnow()
    try:
        attempt = await get_attempt(session, attempt_id)
        if attempt.student_id != student_id:
            raise AuthorizationError("Not authorized for this exam attempt.")
        if attempt.is_submitted:
            raise ConflictError("Exam already submitted.")

        if not auto_submit and is_past_session_end(attempt.exam_session, now):
            auto_submit = True

        result = await finalize_attempt(session, attempt, now, auto_submit)
        await session.commit()
        await session.refresh(attempt)

        if auto_submit:
            logger.warning("Attempt %s auto-submitted after session end", attempt.id)
        else:
            logger.info("Attempt %s submitted by student_id=%s", attempt.id, student_id)
        return result
    except ExamHallError:
        raise
    except Exception as e:
        await session.rollback()
        logger.exception(
            "Error submitting exam attempt attempt_id=%s student_id=%s: %s", str(attempt_id), str(student_id), e
        )
        raise InternalError("Could not submit exam attempt.") from e


async def close_expired_attempts(session: AsyncSession, now: Optional[datetime] = None) -> List[UUID]:
    """Force-submit every open attempt whose session has ended. Returns the closed attempt ids."""
    now = _to_naive_utc(now) or utcnow()
    stmt = (
        select(ExamAttempt)
        .join(ExamSession, ExamAttempt.exam_session_id == ExamSession.id)
        .where(ExamAttempt.is_submitted == False, ExamSession.end_time < now)
    )
    res = await session.execute(stmt)
    closed = []
    for attempt in res.scalars().unique().all():
        try:
            await finalize_attempt(session, attempt, now, auto_submit=True)
        except ConflictError:
            # submitted by its student meanwhile
            continue
        await session.commit()
        closed.append(attempt.id)
    if closed:
        logger.warning("Expiry sweep auto-submitted %d attempt(s)", len(closed))
    return closed


async def delete_attempt(session: AsyncSession, attempt_id: UUID, principal: Principal) -> None:
    """Administrative override removing an attempt with its answers."""
    if not is_exam_manager(principal):
        raise AuthorizationError("You are not authorized to delete exam attempts.")
    attempt = await get_attempt(session, attempt_id)

    await session.execute(delete(StudentAnswer).where(StudentAnswer.attempt_id == attempt.id))
    await session.execute(delete(AttemptQuestion).where(AttemptQuestion.attempt_id == attempt.id))
    await session.delete(attempt)
    await session.commit()
    logger.warning("Attempt %s deleted by %s %s", attempt_id, principal.role.value, principal.id)


async def list_student_attempts(session: AsyncSession, student_id: UUID) -> List[dict]:
    res = await session.execute(
        select(ExamAttempt).where(ExamAttempt.student_id == student_id).order_by(ExamAttempt.start_time.desc())
    )
    out = []
    for r in res.scalars().all():
        published = r.exam.status == ExamStatus.RESULTS_PUBLISHED
        out.append({
            "attempt_id": r.id,
            "exam_id": r.exam_id,
            "exam_title": r.exam.title,
            "exam_session_id": r.exam_session_id,
            "start_time": r.start_time,
            "end_time": r.end_time,
            "is_submitted": r.is_submitted,
            "is_graded": r.is_graded,
            "score_achieved": r.score_achieved if published else None,
        })
    return out
