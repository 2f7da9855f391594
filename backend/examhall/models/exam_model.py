from examhall.db import Base
from sqlalchemy import String, Text


"""
Exams Model
| Column | Type | Notes |
| :--- | :--- | :--- |
| `id` | UUID | Primary Key |
| `title` | VARCHAR | |
| `course_id` | UUID | FK -> Courses, nullable |
| `exam_type` | ENUM | MID_SEMESTER, FINAL, QUIZ, ... MAKEUP |
| `duration_minutes` | INTEGER | |
| `total_marks` | FLOAT | nullable |
| `pass_mark` | FLOAT | nullable |
| `questions_to_attempt` | INTEGER | sample size drawn from the bank per attempt |
| `status` | ENUM | PENDING, ACTIVE, ..., RESULTS_PUBLISHED |
"""

from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, Uuid, Enum as SAEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from examhall.models.course_model import Course


class ExamType(str, enum.Enum):
    MID_SEMESTER = "MID_SEMESTER"
    FINAL = "FINAL"
    QUIZ = "QUIZ"
    ASSIGNMENT = "ASSIGNMENT"
    MAKEUP = "MAKEUP"
    CBT = "CBT"
    PRACTICAL = "PRACTICAL"


class ExamStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    GRADING_IN_PROGRESS = "GRADING_IN_PROGRESS"
    GRADED = "GRADED"
    RESULTS_PUBLISHED = "RESULTS_PUBLISHED"
    ARCHIVED = "ARCHIVED"
    CANCELLED = "CANCELLED"


# statuses in which students may start attempts
ATTEMPTABLE_STATUSES = frozenset({ExamStatus.ACTIVE})


class Exam(Base):
    __tablename__ = "exams"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    course_id = Column(Uuid, ForeignKey("courses.id"), nullable=True)
    exam_type = Column(SAEnum(ExamType), nullable=False, default=ExamType.CBT)
    instructions = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    total_marks = Column(Float, nullable=True)
    pass_mark = Column(Float, nullable=True)
    questions_to_attempt = Column(Integer, nullable=False)
    status = Column(SAEnum(ExamStatus), nullable=False, default=ExamStatus.PENDING)
    created_at = Column(DateTime, default=datetime.utcnow)

    course = relationship(Course, lazy="joined")
