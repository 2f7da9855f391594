from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from examhall.models.user_model import UserRole
from examhall.models.course_model import Course, StaffCourse
from examhall.models.exam_model import Exam


@dataclass(frozen=True)
class Principal:
    """The caller of a service operation."""
    id: UUID
    role: UserRole
    can_manage_exams: bool = False

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(id=user.id, role=user.role, can_manage_exams=bool(user.can_manage_exams))

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT


def is_exam_manager(principal: Principal) -> bool:
    """Admins and staff holding the exam-management capability."""
    if principal.role == UserRole.ADMIN:
        return True
    return principal.role in (UserRole.STAFF, UserRole.LECTURER) and principal.can_manage_exams


async def teaches_exam_course(session: AsyncSession, principal: Principal, exam: Exam) -> bool:
    """True if the principal owns or is assigned to the exam's course."""
    if principal.role not in (UserRole.LECTURER, UserRole.STAFF) or exam.course_id is None:
        return False

    res = await session.execute(select(Course.lecturer_id).where(Course.id == exam.course_id))
    owner_id: Optional[UUID] = res.scalar_one_or_none()
    if owner_id is not None and owner_id == principal.id:
        return True

    res = await session.execute(
        select(StaffCourse.id).where(StaffCourse.course_id == exam.course_id, StaffCourse.staff_id == principal.id)
    )
    return res.first() is not None


async def is_privileged_for_exam(session: AsyncSession, principal: Principal, exam: Exam) -> bool:
    if is_exam_manager(principal):
        return True
    return await teaches_exam_course(session, principal, exam)
