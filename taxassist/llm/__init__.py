"""
TaxAssist LLM Client - text-generation client via litellm

Usage:
    from taxassist.llm import LiteLLMClient, LLMConfig

    config = LLMConfig(model="gpt-4o", api_key="sk-xxx")
    client = LiteLLMClient(config=config, provider_name="openai")
    response = await client.chat_completion(messages=[...])
"""

from .base import BaseLLMClient, LLMConfig, LLMResponse, Usage
from .litellm_client import LiteLLMClient

__all__ = [
    "BaseLLMClient",
    "LLMConfig",
    "LLMResponse",
    "Usage",
    "LiteLLMClient",
]
