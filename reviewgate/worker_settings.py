"""Settings module for ``rq worker -c reviewgate.worker_settings``.

Workers import ``reviewgate.core.orchestrator.process_review_job`` and write
results back to the same database as the API process.
"""

from reviewgate.config.settings import QUEUE_MODE, REVIEW_QUEUE_NAME
from reviewgate.events.dispatcher import redis_connection
from reviewgate.utils.logger import logger, setup_logger

# Set up logging for the worker
setup_logger()

if QUEUE_MODE not in ["redis", "redislite"]:
    raise ValueError(f"Invalid QUEUE_MODE for worker: {QUEUE_MODE}")

logger.info(f"Worker using {QUEUE_MODE} for the '{REVIEW_QUEUE_NAME}' queue.")
REDIS_CONNECTION = redis_connection(QUEUE_MODE)
QUEUES = [REVIEW_QUEUE_NAME]
