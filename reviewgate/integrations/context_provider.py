from abc import ABC, abstractmethod
from functools import lru_cache
from typing import List, Optional

import requests

from reviewgate.config.settings import (
    CONTEXT_ENABLED,
    CONTEXT_SERVICE_URL,
    GITLAB_TIMEOUT_SECONDS,
)
from reviewgate.core.exceptions import ContextUnavailableError
from reviewgate.models.merge_request import MergeRequestDiff
from reviewgate.utils.logger import logger


class ContextProvider(ABC):
    """Supplies background knowledge about the code under review."""

    @abstractmethod
    def get_context(
        self, project_id: int, mr_id: int, diffs: List[MergeRequestDiff]
    ) -> str:
        pass


class NoopContextProvider(ContextProvider):
    def get_context(
        self, project_id: int, mr_id: int, diffs: List[MergeRequestDiff]
    ) -> str:
        return ""


class HttpContextProvider(ContextProvider):
    """Asks an external context service for text relevant to the changed files.

    The service receives ``{"project_id", "mr_id", "files"}`` and answers with
    ``{"context": "..."}``.
    """

    def __init__(
        self,
        url: str,
        timeout: float = GITLAB_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_context(
        self, project_id: int, mr_id: int, diffs: List[MergeRequestDiff]
    ) -> str:
        payload = {
            "project_id": project_id,
            "mr_id": mr_id,
            "files": [d.path for d in diffs if not d.deleted_file],
        }
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return (response.json() or {}).get("context") or ""
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Context service unavailable for {project_id}!{mr_id}: {e}")
            raise ContextUnavailableError(f"Context service request failed: {e}")


@lru_cache(maxsize=None)
def context_provider() -> ContextProvider:
    if CONTEXT_ENABLED and CONTEXT_SERVICE_URL:
        logger.info(f"Using context service at {CONTEXT_SERVICE_URL}.")
        return HttpContextProvider(CONTEXT_SERVICE_URL)
    if CONTEXT_ENABLED:
        logger.warning("CONTEXT_ENABLED is set but CONTEXT_SERVICE_URL is empty.")
    return NoopContextProvider()
