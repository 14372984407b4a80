import os
from dotenv import load_dotenv

load_dotenv()


def _bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _int_list(value: str) -> list:
    return [int(part) for part in value.split(",") if part.strip()]


APP_ENV = os.getenv("APP_ENV", "production").lower()
DEBUG_MODE = _bool("DEBUG_MODE", "false")
QUEUE_MODE = os.getenv("QUEUE_MODE", "thread")
VALID_QUEUE_MODES = ["redis", "redislite", "thread"]
if QUEUE_MODE not in VALID_QUEUE_MODES:
    raise ValueError(
        f"Invalid QUEUE_MODE: {QUEUE_MODE}. Must be one of {VALID_QUEUE_MODES}"
    )

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./reviewgate.db")

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDISLITE_DB_PATH = os.getenv("REDISLITE_DB_PATH", "reviewgate-redis.db")
REVIEW_QUEUE_NAME = os.getenv("REVIEW_QUEUE_NAME", "reviews")

LOG_DRIVER: str = os.getenv("LOG_DRIVER", "console")
LOG_FILE: str = os.getenv("LOG_FILE", "reviewgate.log")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG_MODE else "INFO").upper()

LLM_MODEL = os.getenv("LLM_MODEL", "openai/gpt-4o-mini")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", 120))

GITLAB_API_URL = os.getenv("GITLAB_API_URL", "https://gitlab.com/api/v4").rstrip("/")
GITLAB_TOKEN = os.getenv("GITLAB_TOKEN")
GITLAB_WEBHOOK_SECRET = os.getenv("GITLAB_WEBHOOK_SECRET")
GITLAB_TIMEOUT_SECONDS = float(os.getenv("GITLAB_TIMEOUT_SECONDS", 30))

# Review orchestration
REVIEW_ENABLED = _bool("REVIEW_ENABLED", "true")
REVIEW_MAX_ATTEMPTS = int(os.getenv("REVIEW_MAX_ATTEMPTS", 3))
REVIEW_WORKERS = int(os.getenv("REVIEW_WORKERS", 4))
REVIEW_QUEUE_CAPACITY = int(os.getenv("REVIEW_QUEUE_CAPACITY", 200))
REVIEW_PUBLISH_COMMENTS = _bool("REVIEW_PUBLISH_COMMENTS", "true")
REVIEW_PROJECT_IDS = _int_list(os.getenv("REVIEW_PROJECT_IDS", ""))
STALE_RUNNING_MINUTES = int(os.getenv("STALE_RUNNING_MINUTES", 30))
REVIEW_MAX_FILES = int(os.getenv("REVIEW_MAX_FILES", 20))
REVIEW_MAX_DIFF_CHARS_PER_FILE = int(os.getenv("REVIEW_MAX_DIFF_CHARS_PER_FILE", 12000))
REVIEW_MAX_DIFF_CHARS_TOTAL = int(os.getenv("REVIEW_MAX_DIFF_CHARS_TOTAL", 60000))

# Writing back to the merge request
REVIEW_DRY_RUN = _bool("REVIEW_DRY_RUN", "false")
REVIEW_STATUS_COMMENTS = _bool("REVIEW_STATUS_COMMENTS", "true")
REVIEW_INLINE_COMMENTS = _bool("REVIEW_INLINE_COMMENTS", "true")
REVIEW_MAX_INLINE_COMMENTS = int(os.getenv("REVIEW_MAX_INLINE_COMMENTS", 10))
REVIEW_MAX_INLINE_COMMENTS_PER_FILE = int(os.getenv("REVIEW_MAX_INLINE_COMMENTS_PER_FILE", 3))
REVIEW_MAX_INLINE_COMMENT_CHARS = int(os.getenv("REVIEW_MAX_INLINE_COMMENT_CHARS", 1200))

# Discovery poller
DISCOVERY_ENABLED = _bool("DISCOVERY_ENABLED", "false")
DISCOVERY_INTERVAL_SECONDS = int(os.getenv("DISCOVERY_INTERVAL_SECONDS", 600))
DISCOVERY_LOOKBACK_MINUTES = int(os.getenv("DISCOVERY_LOOKBACK_MINUTES", 30))
DISCOVERY_PER_PROJECT_LIMIT = int(os.getenv("DISCOVERY_PER_PROJECT_LIMIT", 10))

# Review context
CONTEXT_ENABLED = _bool("CONTEXT_ENABLED", "false")
CONTEXT_SERVICE_URL = os.getenv("CONTEXT_SERVICE_URL")

NOTIFY_WEBHOOK_URL = os.getenv("NOTIFY_WEBHOOK_URL")

# AI circuit breaker
BREAKER_WINDOW_SIZE = int(os.getenv("BREAKER_WINDOW_SIZE", 10))
BREAKER_MINIMUM_CALLS = int(os.getenv("BREAKER_MINIMUM_CALLS", 5))
BREAKER_FAILURE_RATE_THRESHOLD = float(os.getenv("BREAKER_FAILURE_RATE_THRESHOLD", 50))
BREAKER_OPEN_COOLDOWN_SECONDS = float(os.getenv("BREAKER_OPEN_COOLDOWN_SECONDS", 30))
BREAKER_HALF_OPEN_MAX_CALLS = int(os.getenv("BREAKER_HALF_OPEN_MAX_CALLS", 3))

RG_API_KEY = os.getenv("RG_API_KEY")
