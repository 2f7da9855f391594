"""
Result assembly for a single attempt.

Grading detail (isCorrect, correctOptionKey, explanation and the per-option
correct flag) is shown according to who is looking and whether the exam's
results are published:

| viewer     | results published | grading detail |
| :---       | :---              | :---           |
| privileged | any               | shown          |
| owner      | yes               | shown          |
| owner      | no                | omitted        |

The student's own selection or text, and the marks awarded, are always shown.
"""
import enum
import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from examhall.errors import ExamHallError, AuthorizationError, InternalError
from examhall.models.attempt_model import ExamAttempt, AttemptQuestion, StudentAnswer
from examhall.models.exam_model import ExamStatus
from examhall.models.question_model import BankQuestion
from examhall.models.user_model import User
from .access_service import Principal, is_privileged_for_exam
from .attempt_service import get_attempt

logger = logging.getLogger(__name__)


class ViewerCapability(str, enum.Enum):
    PRIVILEGED = "privileged"
    OWNER = "owner"


_GRADING_DETAIL_VISIBLE = {
    (ViewerCapability.PRIVILEGED, True): True,
    (ViewerCapability.PRIVILEGED, False): True,
    (ViewerCapability.OWNER, True): True,
    (ViewerCapability.OWNER, False): False,
}


def grading_detail_visible(capability: ViewerCapability, results_published: bool) -> bool:
    return _GRADING_DETAIL_VISIBLE[(capability, results_published)]


def build_option_views(question: BankQuestion, show_grading: bool) -> List[dict]:
    out = []
    for opt in question.options:
        view = {"option_key": opt.option_key, "option_text": opt.option_text}
        if show_grading:
            view["is_correct"] = opt.is_correct
        out.append(view)
    return out


def build_answer_view(answer: StudentAnswer, question: BankQuestion, show_grading: bool) -> dict:
    view = {
        "question_id": question.id,
        "question_text": question.question_text,
        "question_type": question.question_type.value,
        "question_marks": question.marks,
        "selected_option_key": answer.selected_option_key,
        "answer_text": answer.answer_text,
        "marks_awarded": answer.marks_awarded,
        "options": build_option_views(question, show_grading),
    }
    if show_grading:
        view["is_correct"] = answer.is_correct
        view["correct_option_key"] = question.correct_option_key
        view["explanation"] = question.explanation
        view["review_comment"] = answer.review_comment
    return view


async def _resolve_capability(session: AsyncSession, attempt: ExamAttempt, principal: Principal) -> ViewerCapability:
    if await is_privileged_for_exam(session, principal, attempt.exam):
        return ViewerCapability.PRIVILEGED
    if principal.is_student and attempt.student_id == principal.id:
        return ViewerCapability.OWNER
    raise AuthorizationError("You are not authorized to view this exam attempt.")


async def _presented_order(session: AsyncSession, attempt_id: UUID) -> Dict[UUID, int]:
    res = await session.execute(
        select(AttemptQuestion.question_id, AttemptQuestion.display_order).where(AttemptQuestion.attempt_id == attempt_id)
    )
    return {qid: order for qid, order in res.all()}


async def get_attempt_result(session: AsyncSession, attempt_id: UUID, principal: Principal) -> dict:
    """Load an attempt with its answers, shaped for the requesting principal. Pure read."""
    try:
        return await _assemble_result(session, attempt_id, principal)
    except ExamHallError:
        raise
    except Exception as e:
        logger.exception(
            "Error fetching exam attempt result attempt_id=%s principal_id=%s: %s", str(attempt_id), str(principal.id), e
        )
        raise InternalError("Could not retrieve exam attempt result.") from e


async def _assemble_result(session: AsyncSession, attempt_id: UUID, principal: Principal) -> dict:
    attempt = await get_attempt(session, attempt_id)
    capability = await _resolve_capability(session, attempt, principal)
    exam = attempt.exam
    show_grading = grading_detail_visible(capability, exam.status == ExamStatus.RESULTS_PUBLISHED)

    res = await session.execute(select(User).where(User.id == attempt.student_id))
    student: Optional[User] = res.scalar_one_or_none()

    res = await session.execute(select(StudentAnswer).where(StudentAnswer.attempt_id == attempt.id))
    answers = list(res.scalars().all())

    order = await _presented_order(session, attempt.id)

    def sort_key(ans: StudentAnswer):
        q = ans.question
        return (order.get(q.id, q.display_order if q.display_order is not None else 0), str(q.id))

    answers.sort(key=sort_key)
    answered = {a.question_id for a in answers}
    unanswered = sorted((qid for qid in order if qid not in answered), key=lambda qid: order[qid])

    return {
        "id": attempt.id,
        "student_name": student.full_name if student else None,
        "student_reg_no": student.reg_no if student else None,
        "exam_title": exam.title,
        "exam_type": exam.exam_type.value,
        "course": {"code": exam.course.code, "title": exam.course.title} if exam.course else None,
        "session_name": attempt.exam_session.session_name,
        "start_time": attempt.start_time,
        "end_time": attempt.end_time,
        "time_used_seconds": attempt.time_used_seconds,
        "score_achieved": attempt.score_achieved,
        "total_marks": exam.total_marks,
        "pass_mark": exam.pass_mark,
        "is_submitted": attempt.is_submitted,
        "is_graded": attempt.is_graded,
        "is_auto_submitted": attempt.is_auto_submitted,
        "answers": [build_answer_view(a, a.question, show_grading) for a in answers],
        "unanswered_question_ids": unanswered,
    }
