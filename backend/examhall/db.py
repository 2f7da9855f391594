from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from fastapi import Depends
from sqlalchemy.orm import DeclarativeBase

from .config import DATABASE_URL, SCHEMA_SEARCH_PATH, SQL_ECHO


class Base(DeclarativeBase):
    pass


def _connect_args(url: str) -> dict:
    # server_settings is an asyncpg option; other drivers reject it
    if url.startswith("postgresql+asyncpg") and SCHEMA_SEARCH_PATH:
        return {"server_settings": {"search_path": SCHEMA_SEARCH_PATH}}
    return {}


engine = create_async_engine(
    DATABASE_URL,
    connect_args=_connect_args(DATABASE_URL),
    echo=SQL_ECHO,
)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def create_db_and_tables():

    from examhall.models import user_model, course_model, exam_model, question_model, exam_session_model, attempt_model

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


async def get_user_db(session: AsyncSession = Depends(get_async_session)):
    from examhall.models.user_model import User
    from fastapi_users.db import SQLAlchemyUserDatabase
    yield SQLAlchemyUserDatabase(session, User)
