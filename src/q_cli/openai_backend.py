#!/usr/bin/env python

from typing import Any, AsyncIterator, Dict, Optional

import httpx
import openai
from openai import AsyncOpenAI

from .backends import LLMBackend
from .constants import API_TIMEOUT, OPENAI_API_URL, OPENAI_DEFAULT_MODEL
from .errors import ApiError, NetworkError, QueryError, error_for_status
from .logger import logger
from .models import ModelSettings, Provider
from .stream import iter_sse_text


def delta_text(frame: Any) -> Optional[str]:
    """Text carried by one chat-completion chunk; role-only frames carry none"""
    if not isinstance(frame, dict):
        return None
    choices = frame.get("choices") or []
    if not choices:
        return None
    delta = choices[0].get("delta") or {}
    return delta.get("content")


def translate_error(exc: openai.OpenAIError) -> QueryError:
    """Map an SDK exception onto the query error kinds"""
    if isinstance(exc, openai.APIConnectionError):
        # Also covers APITimeoutError
        return NetworkError(f"Network error: {exc}")
    if isinstance(exc, openai.APIStatusError):
        try:
            body = exc.response.text
        except httpx.ResponseNotRead:
            body = exc.message
        return error_for_status(exc.status_code, body)
    return ApiError(str(exc))


class OpenAIBackend(LLMBackend):
    """Chat completions through the OpenAI SDK.

    The SDK's own retries are disabled; retrying is the query engine's job.
    Streaming reads the raw SSE body so frames are assembled by ``SSEDecoder``.
    """

    provider = Provider.OPENAI
    default_model = OPENAI_DEFAULT_MODEL

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        settings: Optional[ModelSettings] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key, model=model, settings=settings)
        self.base_url = base_url or OPENAI_API_URL
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=API_TIMEOUT,
            max_retries=0,
            http_client=http_client,
        )

    def _build_request(self, prompt: str, stream: bool = False) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.settings.temperature,
        }
        if self.settings.max_tokens is not None:
            request["max_tokens"] = self.settings.max_tokens
        if stream:
            request["stream"] = True
        return request

    async def send_query(self, prompt: str) -> str:
        try:
            completion = await self.client.chat.completions.create(**self._build_request(prompt))
        except openai.OpenAIError as exc:
            raise translate_error(exc) from exc

        if not completion.choices:
            raise ApiError("No response choices")
        content = completion.choices[0].message.content or ""
        logger.log_api_request(self.model, len(prompt), len(content))
        return content

    async def send_streaming_query(self, prompt: str) -> AsyncIterator[str]:
        request = self._build_request(prompt, stream=True)
        received = 0
        try:
            async with self.client.chat.completions.with_streaming_response.create(**request) as response:
                async for text in iter_sse_text(response.iter_bytes(), delta_text):
                    received += len(text)
                    yield text
        except openai.OpenAIError as exc:
            raise translate_error(exc) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error while streaming: {exc}") from exc
        logger.log_api_request(self.model, len(prompt), received)

    async def validate_key(self) -> None:
        try:
            await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "test"}],
                max_tokens=1,
            )
        except openai.OpenAIError as exc:
            raise translate_error(exc) from exc

    async def aclose(self) -> None:
        await self.client.close()
