from functools import lru_cache

from reviewgate.config.settings import LLM_MODEL, LLM_TIMEOUT_SECONDS
from reviewgate.llms.litellm_provider import LiteLLMProvider
from reviewgate.llms.llm_interface import AiReviewer
from reviewgate.utils.logger import logger


@lru_cache(maxsize=None)
def llm() -> AiReviewer:
    """
    Factory function to get the AI reviewer instance.
    Uses lru_cache to ensure a single instance is created (singleton pattern).
    """
    if not LLM_MODEL:
        raise ValueError("LLM_MODEL is not configured.")
    logger.info(f"Using LiteLLM with model '{LLM_MODEL}'.")
    return LiteLLMProvider(model=LLM_MODEL, timeout=LLM_TIMEOUT_SECONDS)
