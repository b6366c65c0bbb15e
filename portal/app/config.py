import os
from pathlib import Path
from dotenv import load_dotenv

# Override=True so changes in portal/.env take effect on process reload (and not get
# stuck on old environment variables).
#
# For automated tests (SQLite), we need to prevent portal/.env from overriding the
# test DATABASE_URL. Set DISABLE_DOTENV=1 to skip loading .env.
if os.getenv("DISABLE_DOTENV") != "1":
    load_dotenv(override=True)


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default) or default)


def _env_int(name: str, default: str) -> int:
    return int(os.getenv(name, default) or default)


_raw_database_url = (os.getenv("DATABASE_URL") or "").strip()
# Default to a local SQLite DB for dev so the portal can start out-of-the-box.
# Use an absolute path so it works regardless of current working directory.
_default_sqlite_path = (Path(__file__).resolve().parent.parent / "dev.db").as_posix()
DATABASE_URL = _raw_database_url or f"sqlite:///{_default_sqlite_path}"

LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()

# Auth / JWT
# Tokens are minted by the identity service; we only verify them here.
# NOTE: keep a default for local dev so the server can boot even if SECRET_KEY isn't set.
SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret_change_me")

# -------------------- Application lifecycle --------------------
MAX_REROUTES = _env_int("MAX_REROUTES", "2")
REROUTE_MIN_SCORE = _env_float("REROUTE_MIN_SCORE", "30")
DEFAULT_DENIAL_REASON = os.getenv("DEFAULT_DENIAL_REASON", "Position has been filled")
NO_ALTERNATIVE_REASON = "No alternative position found"

# -------------------- Scoring --------------------
# Similarities are on a 0-100 scale.
SKILL_MATCH_THRESHOLD = _env_float("SKILL_MATCH_THRESHOLD", "55")
ELIGIBILITY_MATCH_THRESHOLD = _env_float("ELIGIBILITY_MATCH_THRESHOLD", "92")
DEGREE_FIELD_MATCH_THRESHOLD = _env_float("DEGREE_FIELD_MATCH_THRESHOLD", "85")

SCORE_WEIGHTS = {"education": 0.30, "experience": 0.20, "skills": 0.20, "eligibility": 0.30}
if abs(sum(SCORE_WEIGHTS.values()) - 1.0) > 1e-9:
    raise ValueError(f"SCORE_WEIGHTS must sum to 1.0, got {sum(SCORE_WEIGHTS.values())}")

RANK_EXCLUDED_STATUSES = {
    s.strip().lower()
    for s in (os.getenv("RANK_EXCLUDED_STATUSES", "withdrawn,archived") or "").split(",")
    if s.strip()
}
