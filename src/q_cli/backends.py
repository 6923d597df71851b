#!/usr/bin/env python

"""
Backend capability shared by every LLM vendor.

The query engine only talks to ``LLMBackend``; ``create_backend`` picks the
vendor implementation for a provider.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional, Union

from .errors import ConfigError
from .models import ModelSettings, Provider


class LLMBackend(ABC):
    provider: Provider
    default_model: str = ""

    def __init__(self, api_key: str, model: Optional[str] = None, settings: Optional[ModelSettings] = None):
        if not api_key:
            raise ConfigError(f"An API key is required for {self.provider}")
        self.api_key = api_key
        self.model = model or self.default_model
        self.settings = settings or ModelSettings()

    def model_name(self) -> str:
        return self.model

    @property
    def system_prompt(self) -> str:
        return self.settings.verbosity.system_prompt

    @abstractmethod
    async def send_query(self, prompt: str) -> str:
        """Send a prompt and return the complete response"""

    @abstractmethod
    def send_streaming_query(self, prompt: str) -> AsyncIterator[str]:
        """Send a prompt and yield response text increments as they arrive.

        Each call opens one fresh transport stream; connection and status
        errors surface when iteration starts.
        """

    @abstractmethod
    async def validate_key(self) -> None:
        """Make a minimal request; raise InvalidKeyError or RateLimitError on failure"""

    async def aclose(self) -> None:
        """Release the HTTP client"""


def create_backend(
    provider: Union[Provider, str],
    api_key: str,
    model: Optional[str] = None,
    settings: Optional[ModelSettings] = None,
    base_url: Optional[str] = None,
) -> LLMBackend:
    """Build the backend for ``provider``"""
    provider = Provider.parse(provider) if not isinstance(provider, Provider) else provider

    if provider is Provider.OPENAI:
        from .openai_backend import OpenAIBackend
        return OpenAIBackend(api_key, model=model, settings=settings, base_url=base_url)

    from .gemini_backend import GeminiBackend
    return GeminiBackend(api_key, model=model, settings=settings, base_url=base_url)
