from ..db import Base
from sqlalchemy import String, Boolean
from sqlalchemy import Column, Enum as SQLAlchemyEnum
from fastapi_users.db import SQLAlchemyBaseUserTableUUID
import enum

class UserRole(str, enum.Enum):
    ADMIN = "admin"
    STAFF = "staff"
    LECTURER = "lecturer"
    STUDENT = "student"

class User(SQLAlchemyBaseUserTableUUID, Base):
    __tablename__ = "users"
    full_name = Column(String)
    reg_no = Column(String, nullable=True, unique=True)
    role = Column(SQLAlchemyEnum(UserRole), default=UserRole.STUDENT)
    # staff flag that grants exam management (and full result visibility)
    can_manage_exams = Column(Boolean, default=False, nullable=False)
