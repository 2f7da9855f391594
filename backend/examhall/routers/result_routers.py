from fastapi import APIRouter, Depends, status
from starlette.responses import Response
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from ..dependencies import current_admin, current_exam_manager, current_principal
from ..schemas.attempt_schema import AttemptResult, GradePayload, GradeResult, ExpirySweepResult
from ..services import attempt_service, answer_service, result_service
from ..services.access_service import Principal

router = APIRouter(prefix="/attempts", tags=["Results"])


@router.get("/{attempt_id}/result", response_model=AttemptResult, response_model_exclude_unset=True)
async def get_attempt_result(attempt_id: UUID, principal: Principal = Depends(current_principal), session: AsyncSession = Depends(get_async_session)):
    """
    Result of one attempt.
    - Admins, exam managers and the course's lecturers see full grading detail.
    - The student who owns the attempt sees grading detail only once results are published.
    """
    return await result_service.get_attempt_result(session, attempt_id, principal)


@router.post("/{attempt_id}/answers/{question_id}/grade", response_model=GradeResult, dependencies=[Depends(current_exam_manager)])
async def grade_answer(attempt_id: UUID, question_id: UUID, payload: GradePayload, principal: Principal = Depends(current_principal), session: AsyncSession = Depends(get_async_session)):
    return await answer_service.grade_answer(
        session,
        attempt_id=attempt_id,
        question_id=question_id,
        principal=principal,
        marks_awarded=payload.marks_awarded,
        is_correct=payload.is_correct,
        review_comment=payload.review_comment,
    )


@router.post("/expire", response_model=ExpirySweepResult, dependencies=[Depends(current_admin)])
async def expire_attempts(session: AsyncSession = Depends(get_async_session)):
    closed = await attempt_service.close_expired_attempts(session)
    return {"closed_attempt_ids": closed}


@router.delete("/{attempt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attempt(attempt_id: UUID, principal: Principal = Depends(current_principal), session: AsyncSession = Depends(get_async_session)):
    await attempt_service.delete_attempt(session, attempt_id, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
