from abc import ABC, abstractmethod

from reviewgate.models.code_review import CodeReview


class AiReviewer(ABC):
    @property
    @abstractmethod
    def model(self) -> str:
        """Identifier of the backing model."""
        pass

    @abstractmethod
    def review(self, prompt: str) -> CodeReview:
        """Reviews the given prompt.

        Raises ``AiRetryableError`` for timeouts, rate limits, server errors
        and unusable responses, and ``AiNonRetryableError`` when the request
        itself is rejected.
        """
        pass
