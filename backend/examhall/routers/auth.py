#  login by registration number (students) or email (staff)
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi_users.password import PasswordHelper
from sqlalchemy import select

from ..db import get_user_db
from ..models.user_model import User
from ..schemas.user_schema import LoginRequest, UserRead
from ..security import get_jwt_strategy

import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/auth', tags=['auth'])

password_helper = PasswordHelper()


async def _find_login_user(user_db, payload: LoginRequest) -> User | None:
    if payload.reg_no:
        res = await user_db.session.execute(select(User).where(User.reg_no == payload.reg_no))
        return res.scalar_one_or_none()
    return await user_db.get_by_email(payload.email)


@router.post("/login")
async def login(payload: LoginRequest, user_db = Depends(get_user_db)):
    identifier = payload.reg_no or payload.email
    user = await _find_login_user(user_db, payload)
    if not user:
        logger.info("Rejected login for unknown account %s", identifier)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    valid, new_hash = password_helper.verify_and_update(payload.password, user.hashed_password)
    if not valid:
        logger.info("Rejected login for %s", identifier)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account is inactive")

    # upgrade hashes made with a deprecated scheme
    if new_hash:
        user = await user_db.update(user, {"hashed_password": new_hash})

    access_token = await get_jwt_strategy().write_token(user)
    logger.info("User %s logged in as %s", user.id, user.role.value)

    return {"user": UserRead.model_validate(user), "token": access_token}
