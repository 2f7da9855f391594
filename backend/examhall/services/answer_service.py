import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from examhall.errors import (
    ExamHallError, AuthorizationError, ConflictError, InternalError, NotFoundError, ValidationError, TIME_EXPIRED,
)
from examhall.models.attempt_model import ExamAttempt, StudentAnswer
from examhall.models.question_model import BankQuestion
from .access_service import Principal, is_privileged_for_exam
from .attempt_service import get_attempt, get_evaluated_questions, get_answers_by_question, finalize_attempt
from .exam_service import utcnow, _to_naive_utc, is_past_session_end
from .grading_service import aggregate_score, grade_objective_answer, is_objective, is_subjective

logger = logging.getLogger(__name__)


def _answer_to_dict(answer: StudentAnswer) -> dict:
    return {
        "question_id": answer.question_id,
        "selected_option_key": answer.selected_option_key,
        "answer_text": answer.answer_text,
        "is_correct": answer.is_correct,
        "marks_awarded": answer.marks_awarded,
    }


async def _get_question_in_scope(session: AsyncSession, attempt: ExamAttempt, question_id: UUID) -> BankQuestion:
    for q in await get_evaluated_questions(session, attempt):
        if q.id == question_id:
            return q
    raise NotFoundError("Question not found for this exam attempt.")


async def _find_answer(session: AsyncSession, attempt_id: UUID, question_id: UUID) -> Optional[StudentAnswer]:
    res = await session.execute(
        select(StudentAnswer).where(StudentAnswer.attempt_id == attempt_id, StudentAnswer.question_id == question_id)
    )
    return res.scalar_one_or_none()


async def _force_submit_expired(session: AsyncSession, attempt: ExamAttempt, now: datetime) -> None:
    try:
        await finalize_attempt(session, attempt, now, auto_submit=True)
        await session.commit()
        logger.warning("Attempt %s auto-submitted on late answer write", attempt.id)
    except ConflictError:
        # already closed by a concurrent submit
        await session.rollback()


async def save_answer(
    session: AsyncSession,
    attempt_id: UUID,
    student_id: UUID,
    question_id: UUID,
    selected_option_key: Optional[str] = None,
    answer_text: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Record (or replace) the student's answer to one question.

    Objective answers are graded immediately. Subjective answers are stored
    with no correctness and zero marks until they are reviewed.

    A write that arrives after the session has ended closes the attempt and
    then fails with a time-expired ValidationError.
    """
    now = _to_naive_utc(now) or utcnow()
    try:
        attempt = await get_attempt(session, attempt_id)
        if attempt.student_id != student_id:
            raise AuthorizationError("Not authorized for this exam attempt.")
        if attempt.is_submitted:
            raise ValidationError("Cannot save answer for a submitted exam.")

        exam_session = attempt.exam_session
        if is_past_session_end(exam_session, now):
            await _force_submit_expired(session, attempt, now)
            raise ValidationError(
                "Exam session time is over. Answer not saved. Attempt has been auto-submitted.",
                code=TIME_EXPIRED,
            )
        if now < exam_session.start_time:
            raise ValidationError("This exam session has not started yet.")

        question = await _get_question_in_scope(session, attempt, question_id)

        values = {"selected_option_key": None, "answer_text": None, "is_correct": None, "marks_awarded": 0.0, "graded_at": None}
        if is_objective(question):
            if not selected_option_key:
                raise ValidationError("Selected option key is required for this question type.")
            is_correct, marks = grade_objective_answer(question, selected_option_key)
            values.update(selected_option_key=selected_option_key, is_correct=is_correct, marks_awarded=marks, graded_at=now)
        elif is_subjective(question):
            if answer_text is None:
                raise ValidationError("Answer text is required for this question type.")
            values["answer_text"] = answer_text
        else:
            raise ValidationError(f"Unsupported question type for saving answer: {question.question_type.value}")

        answer = await _find_answer(session, attempt.id, question.id)
        if answer is None:
            answer = StudentAnswer(attempt_id=attempt.id, question_id=question.id)
            session.add(answer)
        for key, value in values.items():
            setattr(answer, key, value)

        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.warning("Concurrent answer write rejected for attempt_id=%s question_id=%s", attempt_id, question_id)
            raise ConflictError("This answer was saved by another request. Please retry.")

        return _answer_to_dict(answer)
    except ExamHallError:
        raise
    except Exception as e:
        await session.rollback()
        logger.exception(
            "Error saving answer attempt_id=%s student_id=%s question_id=%s: %s",
            str(attempt_id), str(student_id), str(question_id), e,
        )
        raise InternalError("Could not save answer.") from e


async def grade_answer(
    session: AsyncSession,
    attempt_id: UUID,
    question_id: UUID,
    principal: Principal,
    marks_awarded: float,
    is_correct: Optional[bool] = None,
    review_comment: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Manually grade one answer of a submitted attempt and re-total the attempt."""
    now = _to_naive_utc(now) or utcnow()
    try:
        return await _grade_answer(session, attempt_id, question_id, principal, marks_awarded, is_correct, review_comment, now)
    except ExamHallError:
        raise
    except Exception as e:
        await session.rollback()
        logger.exception("Error grading answer attempt_id=%s question_id=%s: %s", str(attempt_id), str(question_id), e)
        raise InternalError("Could not grade answer.") from e


async def _grade_answer(session, attempt_id, question_id, principal, marks_awarded, is_correct, review_comment, now) -> dict:
    attempt = await get_attempt(session, attempt_id)
    if not await is_privileged_for_exam(session, principal, attempt.exam):
        raise AuthorizationError("You are not authorized to grade this exam attempt.")
    if not attempt.is_submitted:
        raise ValidationError("Answers can only be graded after the attempt is submitted.")

    question = await _get_question_in_scope(session, attempt, question_id)
    max_marks = float(question.marks or 0)
    if marks_awarded < 0 or marks_awarded > max_marks:
        raise ValidationError(f"marksAwarded must be between 0 and {max_marks}")

    answers = await get_answers_by_question(session, attempt.id)
    answer = answers.get(question.id)
    if answer is None:
        # unanswered question graded by hand
        answer = StudentAnswer(attempt_id=attempt.id, question_id=question.id)
        session.add(answer)
        answers[question.id] = answer
    answer.marks_awarded = float(marks_awarded)
    answer.is_correct = is_correct
    answer.graded_at = now
    if review_comment is not None:
        answer.review_comment = review_comment

    summary = aggregate_score(await get_evaluated_questions(session, attempt), answers)
    attempt.score_achieved = summary.score_achieved
    attempt.is_graded = summary.is_graded

    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("This answer was modified by another request. Please retry.")

    logger.info("Answer for question %s on attempt %s graded by %s", question.id, attempt.id, principal.id)
    return {
        "attempt_id": attempt.id,
        "question_id": question.id,
        "marks_awarded": answer.marks_awarded,
        "is_correct": answer.is_correct,
        "score_achieved": summary.score_achieved,
        "is_graded": summary.is_graded,
        "requires_manual_grading": summary.requires_manual_grading,
    }
