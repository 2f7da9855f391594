"""
Read-only checks run before an attempt is created.

Checks run in a fixed order and the first failure wins:

1. the student is assigned to the session
2. the student account is active
3. the session is active and the exam is in an attempt-taking status
4. now lies within the session window
5. no open attempt exists for (student, session)
6. no submitted attempt exists, unless the exam type allows re-attempts
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from examhall import config
from examhall.errors import AuthorizationError, ConflictError
from examhall.models.attempt_model import ExamAttempt
from examhall.models.exam_model import Exam, ATTEMPTABLE_STATUSES
from examhall.models.exam_session_model import ExamSession, ExamAssignment
from examhall.models.user_model import User
from .exam_service import utcnow


@dataclass
class EligibilityContext:
    assignment: ExamAssignment
    exam_session: ExamSession
    exam: Exam


def allows_reattempt(exam: Exam) -> bool:
    return exam.exam_type.value in config.REATTEMPT_EXAM_TYPES


async def check_eligibility(
    session: AsyncSession,
    student_id: UUID,
    exam_session_id: UUID,
    now: Optional[datetime] = None,
) -> EligibilityContext:
    now = now or utcnow()

    res = await session.execute(
        select(ExamAssignment).where(
            ExamAssignment.student_id == student_id,
            ExamAssignment.exam_session_id == exam_session_id,
        )
    )
    assignment = res.scalar_one_or_none()
    if assignment is None:
        raise AuthorizationError("You are not assigned to this exam session.")

    res = await session.execute(select(User.is_active).where(User.id == student_id))
    is_active = res.scalar_one_or_none()
    if not is_active:
        raise AuthorizationError("Your student account is inactive.")

    res = await session.execute(select(ExamSession).where(ExamSession.id == exam_session_id))
    exam_session = res.scalar_one()
    exam = exam_session.exam

    if not exam_session.is_active:
        raise AuthorizationError("This exam session is not currently active.")
    if exam.status not in ATTEMPTABLE_STATUSES:
        raise AuthorizationError(
            f"This exam ({exam.title}) is not currently active (status: {exam.status.value})."
        )

    if now < exam_session.start_time:
        raise AuthorizationError("This exam session has not started yet.")
    if now > exam_session.end_time:
        raise AuthorizationError("This exam session has already ended.")

    res = await session.execute(
        select(ExamAttempt.id, ExamAttempt.is_submitted).where(
            ExamAttempt.student_id == student_id,
            ExamAttempt.exam_session_id == exam_session_id,
        )
    )
    rows = res.all()
    if any(not is_submitted for _, is_submitted in rows):
        raise ConflictError("You already have an active attempt for this exam session. Multiple attempts not allowed.")
    if rows and not allows_reattempt(exam):
        raise ConflictError("You have already completed an attempt for this exam session.")

    return EligibilityContext(assignment=assignment, exam_session=exam_session, exam=exam)
