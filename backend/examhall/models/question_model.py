from examhall.db import Base
import uuid
import enum
from sqlalchemy import Column, Integer, String, Text, Float, Boolean, ForeignKey, Uuid, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"
    ESSAY = "ESSAY"


OBJECTIVE_TYPES = frozenset({QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE})
SUBJECTIVE_TYPES = frozenset({QuestionType.SHORT_ANSWER, QuestionType.ESSAY})


class BankQuestion(Base):
    __tablename__ = "questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    exam_id = Column(Uuid, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(SAEnum(QuestionType), nullable=False)
    marks = Column(Float, nullable=False)
    correct_option_key = Column(String, nullable=True)
    explanation = Column(Text, nullable=True)
    topic = Column(String, nullable=True)
    # only bank questions are eligible for sampling
    is_bank_question = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=True)

    options = relationship(
        "QuestionOption",
        order_by="QuestionOption.option_key",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class QuestionOption(Base):
    __tablename__ = "question_options"
    __table_args__ = (UniqueConstraint("question_id", "option_key", name="uq_question_option_key"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    question_id = Column(Uuid, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    option_key = Column(String, nullable=False)
    option_text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=True)
