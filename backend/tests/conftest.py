import uuid
from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

from examhall.app import app
from examhall.db import Base, get_async_session
from examhall.models import user_model, course_model, exam_model, question_model, exam_session_model, attempt_model  # noqa: F401
from examhall.models.user_model import User, UserRole
from examhall.models.course_model import Course, StaffCourse
from examhall.models.exam_model import Exam, ExamStatus, ExamType
from examhall.models.exam_session_model import ExamSession, ExamAssignment
from examhall.models.question_model import BankQuestion, QuestionOption, QuestionType
from examhall.models.attempt_model import ExamAttempt

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# fixed clock used by the service tests; sessions run 09:00-12:00
NOW = datetime(2026, 3, 2, 10, 0, 0)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def now() -> datetime:
    return NOW


class Factory:
    """Builds the registry rows the attempt engine reads."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def user(self, role=UserRole.STUDENT, is_active=True, can_manage_exams=False, full_name=None, reg_no=None) -> User:
        user = User(
            email=f"{uuid.uuid4().hex[:10]}@uni.test",
            hashed_password="hashed",
            full_name=full_name or f"Test {role.value}",
            reg_no=reg_no,
            role=role,
            is_active=is_active,
            can_manage_exams=can_manage_exams,
        )
        self.db.add(user)
        await self.db.commit()
        return user

    async def course(self, lecturer: User | None = None) -> Course:
        course = Course(code=f"CSC{uuid.uuid4().hex[:4]}", title="Data Structures", lecturer_id=lecturer.id if lecturer else None)
        self.db.add(course)
        await self.db.commit()
        return course

    async def assign_staff(self, staff: User, course: Course) -> StaffCourse:
        link = StaffCourse(staff_id=staff.id, course_id=course.id)
        self.db.add(link)
        await self.db.commit()
        return link

    async def exam(
        self,
        questions_to_attempt=10,
        status=ExamStatus.ACTIVE,
        exam_type=ExamType.CBT,
        course: Course | None = None,
        total_marks=50.0,
        pass_mark=25.0,
    ) -> Exam:
        exam = Exam(
            title="Midterm CBT",
            course_id=course.id if course else None,
            exam_type=exam_type,
            duration_minutes=120,
            total_marks=total_marks,
            pass_mark=pass_mark,
            questions_to_attempt=questions_to_attempt,
            status=status,
        )
        self.db.add(exam)
        await self.db.commit()
        return exam

    async def exam_session(self, exam: Exam, start=None, end=None, is_active=True) -> ExamSession:
        exam_session = ExamSession(
            exam_id=exam.id,
            session_name="Morning sitting",
            venue="CBT Hall A",
            start_time=start or NOW - timedelta(hours=1),
            end_time=end or NOW + timedelta(hours=2),
            is_active=is_active,
        )
        self.db.add(exam_session)
        await self.db.commit()
        return exam_session

    async def assign(self, student: User, exam_session: ExamSession) -> ExamAssignment:
        assignment = ExamAssignment(student_id=student.id, exam_session_id=exam_session.id)
        self.db.add(assignment)
        await self.db.commit()
        return assignment

    async def mcq(self, exam: Exam, correct="B", marks=5.0, is_bank_question=True, explanation="Because.") -> BankQuestion:
        question = BankQuestion(
            exam_id=exam.id,
            question_text="Pick the right option",
            question_type=QuestionType.MULTIPLE_CHOICE,
            marks=marks,
            correct_option_key=correct,
            explanation=explanation,
            is_bank_question=is_bank_question,
        )
        question.options = [
            QuestionOption(option_key=key, option_text=f"Option {key}", is_correct=(key == correct))
            for key in ("A", "B", "C", "D")
        ]
        self.db.add(question)
        await self.db.commit()
        return question

    async def essay(self, exam: Exam, marks=5.0, question_type=QuestionType.ESSAY) -> BankQuestion:
        question = BankQuestion(
            exam_id=exam.id,
            question_text="Discuss",
            question_type=question_type,
            marks=marks,
            explanation="Marking guide",
        )
        self.db.add(question)
        await self.db.commit()
        return question

    async def attempt(self, student: User, exam_session: ExamSession, is_submitted=False, start=None) -> ExamAttempt:
        attempt = ExamAttempt(
            student_id=student.id,
            exam_id=exam_session.exam_id,
            exam_session_id=exam_session.id,
            start_time=start or NOW,
            is_submitted=is_submitted,
            end_time=NOW if is_submitted else None,
        )
        self.db.add(attempt)
        await self.db.commit()
        return attempt

    async def ready_exam(self, mcqs=10, essays=0, questions_to_attempt=None, **exam_kwargs):
        """An active exam with a live session and an assigned student."""
        count = questions_to_attempt if questions_to_attempt is not None else mcqs + essays
        exam = await self.exam(questions_to_attempt=count, **exam_kwargs)
        questions = [await self.mcq(exam) for _ in range(mcqs)]
        questions += [await self.essay(exam) for _ in range(essays)]
        exam_session = await self.exam_session(exam)
        student = await self.user(full_name="Ada Student", reg_no=f"U{uuid.uuid4().hex[:6]}")
        await self.assign(student, exam_session)
        return exam, exam_session, student, questions


@pytest_asyncio.fixture
async def factory(db) -> Factory:
    return Factory(db)


@pytest_asyncio.fixture
async def client(session_maker):
    """HTTP client against the app, with every request using the test database."""
    async def override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
