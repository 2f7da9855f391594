from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi import Depends

from .routers import auth, attempt_routers, result_routers
from contextlib import asynccontextmanager
from .config import CORS_ORIGINS, LOG_LEVEL
from .db import create_db_and_tables
from .errors import register_error_handlers
from .security import auth_backend, app_users
from .dependencies import users_router_permission
from .schemas.user_schema import UserCreate, UserRead, UserUpdate

import logging

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # run once when app starts. Make DB tables.
    await create_db_and_tables()
    yield

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,  # which sites can call this API
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Attach users router with small permission check. This router provides /users and /users/me
app.include_router(
    app_users.get_users_router(UserRead, UserUpdate),
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(users_router_permission)],
)


app.include_router(attempt_routers.router, prefix="/api")
app.include_router(result_routers.router, prefix="/api")

# Auth routers
app.include_router(app_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"])
app.include_router(auth.router)
app.include_router(app_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
