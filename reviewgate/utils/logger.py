import logging
import sys
from logging.handlers import RotatingFileHandler, SysLogHandler

from reviewgate.config import settings

# Chatty client libraries; their DEBUG output drowns the per-run review lines.
QUIET_LOGGERS = ("LiteLLM", "httpx", "httpcore", "urllib3", "rq.worker")


class LevelFilter(logging.Filter):
    def __init__(self, min_level, max_level):
        super().__init__()
        self.min_level = min_level
        self.max_level = max_level

    def filter(self, record):
        return self.min_level <= record.levelno <= self.max_level


formatter = logging.Formatter(
    "%(asctime)s - %(threadName)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger()


def setup_logger():
    """(Re)build the root handlers for the configured LOG_DRIVER and LOG_LEVEL."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    level = logging.getLevelName(settings.LOG_LEVEL)
    if not isinstance(level, int):
        raise ValueError(f"Invalid LOG_LEVEL: {settings.LOG_LEVEL}")
    logger.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    log_driver = settings.LOG_DRIVER
    if log_driver == "file":
        handler = RotatingFileHandler(
            settings.LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    elif log_driver == "syslog":
        handler = SysLogHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    elif log_driver == "console":
        # INFO and below to stdout
        stdout_handler = logging.StreamHandler(stream=sys.stdout)
        stdout_handler.setFormatter(formatter)
        stdout_handler.addFilter(LevelFilter(logging.DEBUG, logging.INFO))
        logger.addHandler(stdout_handler)

        # WARNING and above to stderr
        stderr_handler = logging.StreamHandler(stream=sys.stderr)
        stderr_handler.setFormatter(formatter)
        stderr_handler.addFilter(LevelFilter(logging.WARNING, logging.CRITICAL))
        logger.addHandler(stderr_handler)
    else:
        raise ValueError(
            f"Invalid LOG_DRIVER: {log_driver}. Must be one of ['console', 'file', 'syslog']"
        )
