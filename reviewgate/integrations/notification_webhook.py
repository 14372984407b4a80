from typing import Optional

import requests

from reviewgate.events.review_finished_event import ReviewFinishedEvent
from reviewgate.utils.logger import logger


class WebhookNotificationSink:
    """POSTs finished-review events as JSON to an outbound webhook."""

    def __init__(
        self, url: str, timeout: float = 10, session: Optional[requests.Session] = None
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self, event) -> None:
        if not isinstance(event, ReviewFinishedEvent):
            return
        response = self.session.post(self.url, json=event.to_dict(), timeout=self.timeout)
        response.raise_for_status()
        logger.info(f"Delivered {event} to notification webhook.")
