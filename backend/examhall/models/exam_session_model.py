from examhall.db import Base
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime

from examhall.models.exam_model import Exam


class ExamSession(Base):
    """A scheduled sitting of an exam with its own time window."""
    __tablename__ = "exam_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # ensure exam_id is a proper foreign key so DB-level ON DELETE CASCADE can remove sessions
    exam_id = Column(Uuid, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    session_name = Column(String, nullable=True)
    venue = Column(String, nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    access_password_hash = Column(String, nullable=True)
    max_attendees = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    exam = relationship(Exam, lazy="joined")


class ExamAssignment(Base):
    """Binds one student to one exam session."""
    __tablename__ = "exam_session_assignments"
    __table_args__ = (UniqueConstraint("student_id", "exam_session_id", name="uq_assignment_student_session"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    exam_session_id = Column(Uuid, ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    seat_number = Column(String, nullable=True)
    assigned_at = Column(DateTime, default=datetime.utcnow)
