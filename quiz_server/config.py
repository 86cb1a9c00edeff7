"""
Runtime configuration read from environment variables
"""
import os
from pathlib import Path


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return default


# HTTP server
PORT = int(os.environ.get("PORT", 3000))
SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
STATIC_DIR = Path(os.getenv("QUIZ_STATIC_DIR", "./public"))
LOG_LEVEL = os.environ.get("QUIZ_LOG_LEVEL", "INFO").upper()

# Requests per window per IP on plain HTTP routes
RATE_LIMIT_REQUESTS = int(os.environ.get("QUIZ_RATE_LIMIT", 100))
RATE_LIMIT_WINDOW_SEC = 60

# Question provider (Open Trivia DB compatible)
QUIZ_API_URL = os.environ.get("QUIZ_API_URL", "https://opentdb.com/api.php")
QUIZ_API_CATEGORIES_URL = os.environ.get(
    "QUIZ_API_CATEGORIES_URL", "https://opentdb.com/api_category.php"
)
QUIZ_API_TIMEOUT = _float_env("QUIZ_API_TIMEOUT", 10.0)

# Session timing (seconds)
ANSWER_DELAY_SEC = _float_env("QUIZ_ANSWER_DELAY", 3.0)
SKIP_DELAY_SEC = _float_env("QUIZ_SKIP_DELAY", 1.0)
START_DELAY_SEC = _float_env("QUIZ_START_DELAY", 1.0)
SOLO_START_DELAY_SEC = _float_env("QUIZ_SOLO_START_DELAY", 0.5)

# Question history housekeeping
HISTORY_CLEANUP_SEC = _float_env("QUIZ_HISTORY_CLEANUP_SEC", 3600.0)
HISTORY_MAX_USERS = 1000
HISTORY_KEEP_USERS = 500
