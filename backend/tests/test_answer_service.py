from datetime import timedelta

import pytest
from sqlalchemy import select, func

from examhall.errors import (
    AuthorizationError, ConflictError, NotFoundError, ValidationError, TIME_EXPIRED,
)
from examhall.models.attempt_model import ExamAttempt, StudentAnswer
from examhall.models.question_model import QuestionType
from examhall.models.user_model import UserRole
from examhall.services import answer_service
from examhall.services.access_service import Principal
from examhall.services.answer_service import save_answer, grade_answer
from examhall.services.attempt_service import start_attempt, submit_attempt

pytestmark = pytest.mark.asyncio


async def _started(db, factory, now, **kwargs):
    exam, exam_session, student, questions = await factory.ready_exam(**kwargs)
    out = await start_attempt(db, student.id, exam_session.id, now=now)
    return exam, exam_session, student, questions, out["attempt_id"]


async def test_correct_mcq_answer_scores_question_marks(db, factory, now):
    _, _, student, questions, attempt_id = await _started(db, factory, now, mcqs=1)

    saved = await save_answer(db, attempt_id, student.id, questions[0].id, selected_option_key="B", now=now)
    assert saved["is_correct"] is True
    assert saved["marks_awarded"] == questions[0].marks
    assert saved["selected_option_key"] == "B"
    assert saved["answer_text"] is None


@pytest.mark.parametrize("key", ["A", "C", "D", "b", "B "])
async def test_wrong_mcq_answer_scores_zero(db, factory, now, key):
    _, _, student, questions, attempt_id = await _started(db, factory, now, mcqs=1)

    saved = await save_answer(db, attempt_id, student.id, questions[0].id, selected_option_key=key, now=now)
    assert saved["is_correct"] is False
    assert saved["marks_awarded"] == 0


async def test_true_false_question_is_auto_graded(db, factory, now):
    exam, exam_session, student, _ = await factory.ready_exam(mcqs=0, questions_to_attempt=1)
    question = await factory.mcq(exam, correct="TRUE", marks=2)
    question.question_type = QuestionType.TRUE_FALSE
    await db.commit()
    out = await start_attempt(db, student.id, exam_session.id, now=now)

    saved = await save_answer(db, out["attempt_id"], student.id, question.id, selected_option_key="TRUE", now=now)
    assert saved["is_correct"] is True
    assert saved["marks_awarded"] == 2


async def test_reanswering_replaces_the_previous_answer(db, factory, now):
    _, _, student, questions, attempt_id = await _started(db, factory, now, mcqs=1)
    qid = questions[0].id

    await save_answer(db, attempt_id, student.id, qid, selected_option_key="B", now=now)
    saved = await save_answer(db, attempt_id, student.id, qid, selected_option_key="A", now=now + timedelta(minutes=1))

    assert saved["is_correct"] is False
    rows = (await db.execute(select(func.count()).select_from(StudentAnswer).where(StudentAnswer.attempt_id == attempt_id))).scalar_one()
    assert rows == 1


async def test_concurrent_first_answer_loses_on_unique_guard(db, factory, now, monkeypatch):
    _, _, student, questions, attempt_id = await _started(db, factory, now, mcqs=1)
    # the rollback after the lost race expires every loaded instance
    student_id, qid = student.id, questions[0].id

    # a competing request stores its answer after our lookup found none
    await save_answer(db, attempt_id, student_id, qid, selected_option_key="B", now=now)

    async def no_answer_yet(*args, **kwargs):
        return None

    monkeypatch.setattr(answer_service, "_find_answer", no_answer_yet)
    with pytest.raises(ConflictError):
        await save_answer(db, attempt_id, student_id, qid, selected_option_key="A", now=now)

    rows = (await db.execute(select(StudentAnswer).where(StudentAnswer.attempt_id == attempt_id))).scalars().all()
    assert len(rows) == 1
    assert rows[0].selected_option_key == "B"


async def test_objective_answer_requires_option_key(db, factory, now):
    _, _, student, questions, attempt_id = await _started(db, factory, now, mcqs=1)

    with pytest.raises(ValidationError, match="Selected option key"):
        await save_answer(db, attempt_id, student.id, questions[0].id, answer_text="B", now=now)
    with pytest.raises(ValidationError):
        await save_answer(db, attempt_id, student.id, questions[0].id, selected_option_key="", now=now)


async def test_subjective_answer_is_stored_ungraded(db, factory, now):
    _, _, student, questions, attempt_id = await _started(db, factory, now, mcqs=0, essays=1)

    saved = await save_answer(db, attempt_id, student.id, questions[0].id, answer_text="My essay", now=now)
    assert saved["answer_text"] == "My essay"
    assert saved["is_correct"] is None
    assert saved["marks_awarded"] == 0

    row = (await db.execute(select(StudentAnswer).where(StudentAnswer.attempt_id == attempt_id))).scalar_one()
    assert row.graded_at is None


async def test_subjective_answer_requires_text(db, factory, now):
    _, _, student, questions, attempt_id = await _started(db, factory, now, mcqs=0, essays=1)

    with pytest.raises(ValidationError, match="Answer text"):
        await save_answer(db, attempt_id, student.id, questions[0].id, selected_option_key="A", now=now)


async def test_answer_checks_attempt_owner_and_existence(db, factory, now):
    _, exam_session, student, questions, attempt_id = await _started(db, factory, now, mcqs=1)
    other = await factory.user()

    with pytest.raises(AuthorizationError):
        await save_answer(db, attempt_id, other.id, questions[0].id, selected_option_key="B", now=now)
    with pytest.raises(NotFoundError):
        await save_answer(db, exam_session.id, student.id, questions[0].id, selected_option_key="B", now=now)


async def test_question_outside_the_attempt_is_not_found(db, factory, now):
    exam, _, student, _, attempt_id = await _started(db, factory, now, mcqs=2)
    other_exam = await factory.exam(questions_to_attempt=1)
    foreign = await factory.mcq(other_exam)

    with pytest.raises(NotFoundError):
        await save_answer(db, attempt_id, student.id, foreign.id, selected_option_key="B", now=now)


async def test_answer_after_submission_is_rejected(db, factory, now):
    _, _, student, questions, attempt_id = await _started(db, factory, now, mcqs=1)
    await submit_attempt(db, attempt_id, student.id, now=now)

    with pytest.raises(ValidationError, match="submitted"):
        await save_answer(db, attempt_id, student.id, questions[0].id, selected_option_key="B", now=now)


async def test_late_answer_force_submits_attempt_and_fails(db, factory, now):
    _, exam_session, student, questions, attempt_id = await _started(db, factory, now, mcqs=2)
    await save_answer(db, attempt_id, student.id, questions[0].id, selected_option_key="B", now=now)
    late = exam_session.end_time + timedelta(seconds=1)

    with pytest.raises(ValidationError) as exc:
        await save_answer(db, attempt_id, student.id, questions[1].id, selected_option_key="B", now=late)
    assert exc.value.code == TIME_EXPIRED

    attempt = (await db.execute(select(ExamAttempt).where(ExamAttempt.id == attempt_id))).scalar_one()
    await db.refresh(attempt)
    assert attempt.is_submitted is True
    assert attempt.is_auto_submitted is True
    assert attempt.end_time == late
    assert attempt.score_achieved == 5

    # the late answer was not stored
    rows = (await db.execute(select(StudentAnswer).where(StudentAnswer.attempt_id == attempt_id))).scalars().all()
    assert [r.question_id for r in rows] == [questions[0].id]


async def test_manual_grading_completes_attempt(db, factory, now):
    exam, _, student, questions, attempt_id = await _started(db, factory, now, mcqs=1, essays=1)
    mcq, essay = questions
    await save_answer(db, attempt_id, student.id, mcq.id, selected_option_key="B", now=now)
    await save_answer(db, attempt_id, student.id, essay.id, answer_text="An essay", now=now)
    submitted = await submit_attempt(db, attempt_id, student.id, now=now)
    assert submitted["is_graded"] is False

    admin = await factory.user(role=UserRole.ADMIN)
    graded = await grade_answer(db, attempt_id, essay.id, Principal.from_user(admin), 3.5, review_comment="Good")

    assert graded["marks_awarded"] == 3.5
    assert graded["score_achieved"] == 8.5
    assert graded["is_graded"] is True
    assert graded["requires_manual_grading"] is False


async def test_manual_grading_rules(db, factory, now):
    exam, _, student, questions, attempt_id = await _started(db, factory, now, mcqs=0, essays=1)
    essay = questions[0]
    lecturer = await factory.user(role=UserRole.LECTURER)
    admin = Principal.from_user(await factory.user(role=UserRole.ADMIN))

    with pytest.raises(ValidationError, match="after the attempt is submitted"):
        await grade_answer(db, attempt_id, essay.id, admin, 1)

    await submit_attempt(db, attempt_id, student.id, now=now)

    with pytest.raises(ValidationError, match="between 0 and"):
        await grade_answer(db, attempt_id, essay.id, admin, essay.marks + 1)
    with pytest.raises(AuthorizationError):
        await grade_answer(db, attempt_id, essay.id, Principal.from_user(lecturer), 1)
    with pytest.raises(AuthorizationError):
        await grade_answer(db, attempt_id, essay.id, Principal(id=student.id, role=UserRole.STUDENT), 1)

    # an unanswered essay can still be graded by hand
    graded = await grade_answer(db, attempt_id, essay.id, admin, 0)
    assert graded["is_graded"] is True
