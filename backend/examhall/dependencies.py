from fastapi import Depends, HTTPException, status, Request
from examhall.models.user_model import User, UserRole
from examhall.services.access_service import Principal
from .security import current_user, current_active_user


def current_user_has_role(*allowed_roles: UserRole, require_active: bool = True):
    user_dependency = current_active_user if require_active else current_user

    async def current_user_contains_role(user: User = Depends(user_dependency)):
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted",
            )
        return user
    return current_user_contains_role


current_admin = current_user_has_role(UserRole.ADMIN)
# inactive students still reach the attempt services, which refuse them with a 403
current_student = current_user_has_role(UserRole.STUDENT, require_active=False)


async def current_exam_manager(user: User = Depends(current_active_user)):
    if user.role == UserRole.ADMIN:
        return user
    if user.role in (UserRole.STAFF, UserRole.LECTURER):
        # course ownership is checked per attempt by the services
        return user
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")


async def current_principal(user: User = Depends(current_active_user)) -> Principal:
    return Principal.from_user(user)


async def users_router_permission(request: Request, user: User = Depends(current_active_user)):
    method = request.method.upper()
    # Admin-only methods
    if method in ("POST", "PUT", "PATCH", "DELETE"):
        if user.role != UserRole.ADMIN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")
    return True


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
