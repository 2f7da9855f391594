from fastapi_users import schemas
from examhall.models.user_model import UserRole
import uuid
from typing import Optional
from pydantic import BaseModel, validator

class UserRead(schemas.BaseUser[uuid.UUID]):
    full_name: str
    reg_no: str | None = None
    role: UserRole
    can_manage_exams: bool = False

# Self-registration. No role field: new accounts always get the model default (student).
class UserCreate(schemas.BaseUserCreate):
    full_name: str
    reg_no: str | None = None

# Only reachable by admins (see users_router_permission)
class UserUpdate(schemas.BaseUserUpdate):
    full_name : str | None = None
    reg_no: str | None = None
    role: UserRole | None = None
    can_manage_exams: bool | None = None

class LoginRequest(BaseModel):
    reg_no: Optional[str] = None
    email: Optional[str] = None
    password: str

    @validator("email", always=True)
    def identifier_must_be_present(cls, v, values):
        if not v and not values.get("reg_no"):
            raise ValueError("regNo or email is required")
        return v
