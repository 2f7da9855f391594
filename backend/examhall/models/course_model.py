from examhall.db import Base
from sqlalchemy import Column, String, ForeignKey, UniqueConstraint, Uuid
import uuid


class Course(Base):
    __tablename__ = "courses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String, nullable=False, unique=True)
    title = Column(String, nullable=False)
    # owning lecturer
    lecturer_id = Column(Uuid, ForeignKey("users.id"), nullable=True)


class StaffCourse(Base):
    """A lecturer or staff member assigned to teach a course."""
    __tablename__ = "staff_courses"
    __table_args__ = (UniqueConstraint("staff_id", "course_id", name="uq_staff_course"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    staff_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
