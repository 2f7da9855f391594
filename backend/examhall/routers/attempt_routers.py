from fastapi import APIRouter, Depends, Request
from typing import List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from ..dependencies import current_student, client_ip
from ..schemas.attempt_schema import (
    AttemptStartResponse, AnswerPayload, AnswerRead, SubmissionResult, AttemptSummary,
)
from ..services import attempt_service, answer_service

router = APIRouter(tags=["Attempts"])


@router.post("/exam-sessions/{exam_session_id}/attempts/start", response_model=AttemptStartResponse)
async def start_attempt(exam_session_id: UUID, request: Request, user=Depends(current_student), session: AsyncSession = Depends(get_async_session)):
    return await attempt_service.start_attempt(
        session,
        student_id=user.id,
        exam_session_id=exam_session_id,
        client_ip=client_ip(request),
        client_user_agent=request.headers.get("user-agent"),
    )


@router.patch("/attempts/{attempt_id}/answers", response_model=AnswerRead)
async def save_answer(attempt_id: UUID, payload: AnswerPayload, user=Depends(current_student), session: AsyncSession = Depends(get_async_session)):
    return await answer_service.save_answer(
        session,
        attempt_id=attempt_id,
        student_id=user.id,
        question_id=payload.question_id,
        selected_option_key=payload.selected_option_key,
        answer_text=payload.answer_text,
    )


@router.post("/attempts/{attempt_id}/submit", response_model=SubmissionResult)
async def submit_attempt(attempt_id: UUID, user=Depends(current_student), session: AsyncSession = Depends(get_async_session)):
    return await attempt_service.submit_attempt(session, attempt_id=attempt_id, student_id=user.id, auto_submit=False)


@router.get("/student/attempts", response_model=List[AttemptSummary])
async def list_my_attempts(user=Depends(current_student), session: AsyncSession = Depends(get_async_session)):
    return await attempt_service.list_student_attempts(session, user.id)
