"""
TaxAssist LiteLLM Client - LLM client powered by litellm

One client for every provider litellm routes to (OpenAI by default).
Upstream failures are classified by exception type and HTTP status code
into RateLimited / Unauthorized / UpstreamUnavailable / InternalError.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from taxassist.errors import (
    InternalError,
    NotConfigured,
    RateLimited,
    TaxAssistError,
    Unauthorized,
    UpstreamUnavailable,
    classify_http_status,
)
from .base import BaseLLMClient, LLMConfig, LLMResponse, Usage

logger = logging.getLogger(__name__)

# Provider -> default environment variable for API key
_PROVIDER_ENV_VARS: Dict[str, Optional[str]] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
    "gemini": "GOOGLE_API_KEY",
    "ollama": None,
}

MISSING_API_KEY_MESSAGE = (
    "OpenAI API key is missing. Please add your API key to the environment variables."
)


def build_litellm_model_string(provider: str, model: str) -> str:
    """Map provider + model to the prefixed model string litellm routes on."""
    provider = provider.lower()
    if provider == "openai":
        return model
    if provider in ("anthropic", "azure", "gemini", "ollama"):
        return f"{provider}/{model}"
    return model


class LiteLLMClient(BaseLLMClient):
    """
    LLM client powered by litellm.

    Example:
        config = LLMConfig(model="gpt-4o", api_key="sk-xxx")
        client = LiteLLMClient(config=config, provider_name="openai")
        response = await client.chat_completion([
            {"role": "user", "content": "Hello!"}
        ])
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        provider_name: str = "openai",
        **kwargs,
    ):
        if config is None:
            if "model" not in kwargs:
                raise ValueError("model is required")
            config = LLMConfig(model=kwargs.pop("model"), **kwargs)
            kwargs = {}

        super().__init__(config, **kwargs)

        self.provider = provider_name.lower()
        self._litellm_model = build_litellm_model_string(self.provider, self.config.model)

        # Explicit config > env var
        api_key = self.config.api_key
        if not api_key:
            env_var = _PROVIDER_ENV_VARS.get(self.provider)
            if env_var:
                api_key = os.environ.get(env_var)
        self._api_key = api_key
        self._key_required = _PROVIDER_ENV_VARS.get(self.provider, "") is not None

        self._base_kwargs: Dict[str, Any] = {
            "timeout": self.config.timeout,
            "num_retries": self.config.max_retries,
        }
        if self.config.base_url:
            self._base_kwargs["api_base"] = self.config.base_url
        if api_key:
            self._base_kwargs["api_key"] = api_key

        logger.info(
            f"LiteLLMClient initialized: provider={self.provider}, "
            f"litellm_model={self._litellm_model}"
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key) or not self._key_required

    async def _call_api(self, messages: List[Dict[str, Any]], **kwargs) -> LLMResponse:
        """Make a non-streaming call via litellm.acompletion."""
        if not self.is_configured:
            raise NotConfigured(MISSING_API_KEY_MESSAGE)

        import litellm

        params: Dict[str, Any] = {
            "model": self._litellm_model,
            "messages": messages,
            "temperature": kwargs.get("temperature", self.config.temperature),
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            **self._base_kwargs,
        }
        if kwargs.get("response_format"):
            params["response_format"] = kwargs["response_format"]

        logger.info(f"[LiteLLM] model={self._litellm_model}, messages={len(messages)}")
        response = await litellm.acompletion(**params)

        message = response.choices[0].message
        usage = None
        if getattr(response, "usage", None):
            usage = Usage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
        return LLMResponse(
            content=message.content or "",
            usage=usage,
            model=getattr(response, "model", self.config.model),
            raw_response=response,
        )

    def _classify_error(self, error: Exception) -> TaxAssistError:
        import litellm

        if isinstance(error, litellm.RateLimitError):
            return RateLimited("OpenAI API rate limit exceeded. Please try again later.")
        if isinstance(error, (litellm.AuthenticationError, litellm.PermissionDeniedError)):
            return Unauthorized(
                "Error connecting to OpenAI API. Please check your API key and try again."
            )
        if isinstance(error, (
            litellm.Timeout,
            litellm.APIConnectionError,
            litellm.ServiceUnavailableError,
            litellm.InternalServerError,
            httpx.TransportError,
        )):
            return UpstreamUnavailable(
                "Error connecting to OpenAI API. Please try again later."
            )
        status_code = getattr(error, "status_code", None)
        if isinstance(status_code, int):
            return classify_http_status(status_code)
        return InternalError()
