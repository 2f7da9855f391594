from examhall.db import Base
from sqlalchemy import Column, Integer, Float, String, Text, Boolean, DateTime, ForeignKey, Uuid, UniqueConstraint, Index, text
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime

from examhall.models.exam_model import Exam
from examhall.models.exam_session_model import ExamSession
from examhall.models.question_model import BankQuestion


class ExamAttempt(Base):
    __tablename__ = "exam_attempts"
    # at most one open attempt per student and session
    __table_args__ = (
        Index(
            "uq_open_attempt_student_session",
            "student_id",
            "exam_session_id",
            unique=True,
            postgresql_where=text("NOT is_submitted"),
            sqlite_where=text("NOT is_submitted"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    exam_id = Column(Uuid, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    exam_session_id = Column(Uuid, ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False)

    start_time = Column(DateTime, nullable=False, default=datetime.utcnow)
    # set exactly once on submission, never cleared
    end_time = Column(DateTime, nullable=True)
    time_used_seconds = Column(Integer, nullable=True)
    score_achieved = Column(Float, nullable=True)
    is_submitted = Column(Boolean, nullable=False, default=False)
    is_graded = Column(Boolean, nullable=False, default=False)
    is_auto_submitted = Column(Boolean, nullable=False, default=False)
    ip_address = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)

    exam = relationship(Exam, lazy="joined")
    exam_session = relationship(ExamSession, lazy="joined")


class AttemptQuestion(Base):
    """A question presented to an attempt, in the order it was shown."""
    __tablename__ = "attempt_questions"
    __table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_attempt_question"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    attempt_id = Column(Uuid, ForeignKey("exam_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Uuid, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    display_order = Column(Integer, nullable=False)


class StudentAnswer(Base):
    __tablename__ = "student_answers"
    __table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_answer_attempt_question"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    attempt_id = Column(Uuid, ForeignKey("exam_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Uuid, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    selected_option_key = Column(String, nullable=True)
    answer_text = Column(Text, nullable=True)
    is_correct = Column(Boolean, nullable=True)
    marks_awarded = Column(Float, nullable=False, default=0)
    # stamped when the answer is auto-graded or manually graded; None means pending review
    graded_at = Column(DateTime, nullable=True)
    review_comment = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    question = relationship(BankQuestion, lazy="joined")
