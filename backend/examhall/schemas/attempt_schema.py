from pydantic import BaseModel, Field, validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from uuid import UUID
from datetime import datetime


class CamelModel(BaseModel):
    """Serialized with camelCase keys; accepts both camelCase and snake_case input."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class QuestionOptionRead(CamelModel):
    option_key: str
    option_text: str


class AttemptQuestionRead(CamelModel):
    id: UUID
    question_text: str
    question_type: str
    marks: float
    display_order: int
    options: List[QuestionOptionRead] = []


class ExamMetadata(CamelModel):
    id: UUID
    title: str
    exam_type: str
    course_code: Optional[str] = None
    duration_minutes: int
    questions_to_attempt: int
    total_marks: Optional[float] = None
    pass_mark: Optional[float] = None
    instructions: Optional[str] = None


class SessionWindow(CamelModel):
    id: UUID
    session_name: Optional[str] = None
    venue: Optional[str] = None
    start_time: datetime
    end_time: datetime


class AttemptStartResponse(CamelModel):
    attempt_id: UUID
    exam: ExamMetadata
    session_window: SessionWindow
    attempt_start_time: datetime
    questions: List[AttemptQuestionRead]


class AnswerPayload(CamelModel):
    question_id: UUID
    selected_option_key: Optional[str] = None
    answer_text: Optional[str] = None

    @validator("answer_text", always=True)
    def answer_must_be_present(cls, v, values):
        if v is None and values.get("selected_option_key") is None:
            raise ValueError("an answer (selectedOptionKey or answerText) is required")
        return v


class AnswerRead(CamelModel):
    question_id: UUID
    selected_option_key: Optional[str] = None
    answer_text: Optional[str] = None
    is_correct: Optional[bool] = None
    marks_awarded: float


class SubmissionResult(CamelModel):
    message: str
    attempt_id: UUID
    score_achieved: float
    is_graded: bool
    requires_manual_grading: bool


class OptionView(CamelModel):
    option_key: str
    option_text: str
    # omitted unless grading detail is visible
    is_correct: Optional[bool] = None


class AnswerView(CamelModel):
    question_id: UUID
    question_text: str
    question_type: str
    question_marks: float
    selected_option_key: Optional[str] = None
    answer_text: Optional[str] = None
    marks_awarded: Optional[float] = None
    options: List[OptionView] = []
    is_correct: Optional[bool] = None
    correct_option_key: Optional[str] = None
    explanation: Optional[str] = None
    review_comment: Optional[str] = None


class CourseRef(CamelModel):
    code: str
    title: str


class AttemptResult(CamelModel):
    id: UUID
    student_name: Optional[str] = None
    student_reg_no: Optional[str] = None
    exam_title: str
    exam_type: str
    course: Optional[CourseRef] = None
    session_name: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    time_used_seconds: Optional[int] = None
    score_achieved: Optional[float] = None
    total_marks: Optional[float] = None
    pass_mark: Optional[float] = None
    is_submitted: bool
    is_graded: bool
    is_auto_submitted: bool
    answers: List[AnswerView] = []
    unanswered_question_ids: List[UUID] = []


class AttemptSummary(CamelModel):
    attempt_id: UUID
    exam_id: UUID
    exam_title: str
    exam_session_id: UUID
    start_time: datetime
    end_time: Optional[datetime] = None
    is_submitted: bool
    is_graded: bool
    score_achieved: Optional[float] = None


class GradePayload(CamelModel):
    marks_awarded: float = Field(..., ge=0)
    is_correct: Optional[bool] = None
    review_comment: Optional[str] = None


class GradeResult(CamelModel):
    attempt_id: UUID
    question_id: UUID
    marks_awarded: float
    is_correct: Optional[bool] = None
    score_achieved: float
    is_graded: bool
    requires_manual_grading: bool


class ExpirySweepResult(CamelModel):
    closed_attempt_ids: List[UUID]
