"""
TaxAssist LLM Client Base - Base class and common types for LLM clients

This module provides:
- BaseLLMClient: Abstract base class for all LLM clients
- LLMConfig: Configuration dataclass
- LLMResponse: Standardized response format
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from taxassist.errors import InternalError, TaxAssistError

logger = logging.getLogger(__name__)


@dataclass
class LLMConfig:
    """
    Configuration for LLM clients.

    Attributes:
        api_key: API key for the provider
        model: Model name (e.g., "gpt-4o")
        base_url: Optional base URL override for API
        temperature: Sampling temperature (0.0 - 2.0)
        max_tokens: Maximum tokens in response
        timeout: Request timeout in seconds
        max_retries: Retries inside the SDK; 0 leaves retrying to the user
    """
    api_key: Optional[str] = None
    model: str = "gpt-4o"
    base_url: Optional[str] = None
    temperature: float = 0.2
    max_tokens: int = 4096
    timeout: int = 60
    max_retries: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Usage:
    """Token usage information"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class LLMResponse:
    """Standardized LLM response format."""
    content: str
    usage: Optional[Usage] = None
    model: Optional[str] = None
    raw_response: Optional[Any] = None


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM clients.

    Subclasses implement ``_call_api`` and ``_classify_error``; callers only
    ever see ``LLMResponse`` or a ``TaxAssistError``.
    """

    provider: str = "unknown"

    def __init__(self, config: Optional[LLMConfig] = None, **kwargs):
        if config is None:
            config = LLMConfig(**kwargs)
        else:
            for key, value in kwargs.items():
                if hasattr(config, key):
                    setattr(config, key, value)
        self.config = config

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def _call_api(self, messages: List[Dict[str, Any]], **kwargs) -> LLMResponse:
        """Make the actual API call (provider-specific)."""

    def _classify_error(self, error: Exception) -> TaxAssistError:
        """Map a provider exception to a typed error. Subclasses refine this."""
        return InternalError()

    async def chat_completion(self, messages: List[Dict[str, Any]], **kwargs) -> LLMResponse:
        """
        Send a chat completion request.

        Example:
            response = await client.chat_completion([
                {"role": "system", "content": "You are a tax assistant."},
                {"role": "user", "content": "Hello!"}
            ])
            print(response.content)
        """
        try:
            return await self._call_api(messages, **kwargs)
        except TaxAssistError:
            raise
        except Exception as e:
            typed = self._classify_error(e)
            logger.error(
                f"LLM call failed ({self.provider}/{self.config.model}): "
                f"{type(e).__name__} -> {typed.kind}"
            )
            raise typed from e
