from dotenv import load_dotenv
import os

load_dotenv()


def _get_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def _get_list(key: str, default: str) -> list[str]:
    raw = os.getenv(key, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


SECRET = os.getenv("SECRET", "change-me")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./examhall.db")
SCHEMA_SEARCH_PATH = os.getenv("SCHEMA_SEARCH_PATH")
SQL_ECHO = _get_bool("SQL_ECHO", False)
JWT_LIFETIME_SECONDS = int(os.getenv("JWT_LIFETIME_SECONDS", "3600"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# NOTE: exact origins used by the frontend dev server (no trailing slash)
CORS_ORIGINS = _get_list(
    "CORS_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000",
)

# "presented": score only the questions sampled for the attempt.
# "bank": score every question of the exam.
SCORING_SCOPE = os.getenv("SCORING_SCOPE", "presented").lower()

# exam types that may be taken again after a submitted attempt
REATTEMPT_EXAM_TYPES = {t.upper() for t in _get_list("REATTEMPT_EXAM_TYPES", "MAKEUP")}
