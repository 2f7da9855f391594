from datetime import datetime, timezone
from examhall.models.exam_model import Exam
from examhall.models.exam_session_model import ExamSession


def utcnow() -> datetime:
    """Current time as naive UTC, matching what the DB stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_naive_utc(dt: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC (remove tzinfo). If already naive, assume UTC and return as-is.
    Returns None if input is None.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # assume naive datetimes are already UTC
        return dt
    # convert to UTC and drop tzinfo
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def is_past_session_end(exam_session: ExamSession, now: datetime) -> bool:
    return now > exam_session.end_time


def _exam_to_metadata_dict(exam: Exam) -> dict:
    return {
        "id": exam.id,
        "title": exam.title,
        "exam_type": exam.exam_type.value,
        "course_code": exam.course.code if exam.course else None,
        "duration_minutes": exam.duration_minutes,
        "questions_to_attempt": exam.questions_to_attempt,
        "total_marks": exam.total_marks,
        "pass_mark": exam.pass_mark,
        "instructions": exam.instructions,
    }


def _session_window_dict(exam_session: ExamSession) -> dict:
    return {
        "id": exam_session.id,
        "session_name": exam_session.session_name,
        "venue": exam_session.venue,
        "start_time": exam_session.start_time,
        "end_time": exam_session.end_time,
    }
