import re

import litellm
from pydantic import ValidationError

from reviewgate.core.exceptions import (
    AiNonRetryableError,
    AiRetryableError,
    is_retryable_status,
)
from reviewgate.llms.llm_interface import AiReviewer
from reviewgate.models.code_review import CodeReview
from reviewgate.prompts.prompts import Prompts
from reviewgate.utils.logger import logger

_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


class LiteLLMProvider(AiReviewer):
    def __init__(self, model: str, timeout: float = 120):
        self._model = model
        self.timeout = timeout

    @property
    def model(self) -> str:
        return self._model

    def review(self, prompt: str) -> CodeReview:
        try:
            logger.info(f"Generating code review from model: {self.model}...")
            response = litellm.completion(
                model=self.model,
                messages=[
                    {"role": "system", "content": Prompts.REVIEW_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                timeout=self.timeout,
            )
        except Exception as e:
            raise self.classify_error(e)

        content = self._content_of(response)
        if not content or not content.strip():
            raise AiRetryableError(f"Model {self.model} returned an empty response")

        try:
            review = CodeReview.model_validate_json(self.strip_code_fence(content))
        except ValidationError as e:
            raise AiRetryableError(
                f"Model {self.model} returned an unparseable review: {e.error_count()} error(s)"
            )

        logger.info(
            f"Code review generated successfully: score {review.score}, "
            f"{len(review.suggestions)} suggestion(s)."
        )
        return review

    def classify_error(self, error: Exception) -> Exception:
        """Maps a litellm/provider exception to the engine's AI error types."""
        if isinstance(error, (AiRetryableError, AiNonRetryableError)):
            return error
        status_code = getattr(error, "status_code", None)
        if not isinstance(status_code, int):
            status_code = None
        message = f"{type(error).__name__} from {self.model}: {error}"
        if is_retryable_status(status_code):
            logger.warning(f"Retryable AI failure: {message}")
            return AiRetryableError(message)
        logger.error(f"Non-retryable AI failure (HTTP {status_code}): {message}")
        return AiNonRetryableError(message)

    @staticmethod
    def strip_code_fence(content: str) -> str:
        match = _CODE_FENCE.match(content)
        return match.group(1) if match else content

    @staticmethod
    def _content_of(response) -> str:
        try:
            return response.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            return ""
