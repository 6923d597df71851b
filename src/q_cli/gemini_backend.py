#!/usr/bin/env python

from typing import Any, AsyncIterator, Dict, Optional

import httpx

from .backends import LLMBackend
from .constants import API_TIMEOUT, GEMINI_API_URL, GEMINI_DEFAULT_MODEL
from .errors import ApiError, InvalidKeyError, NetworkError, QueryError, StreamError, error_for_status
from .logger import logger
from .models import ModelSettings, Provider
from .stream import iter_sse_text


def candidate_text(payload: Any) -> Optional[str]:
    """Concatenated text parts of the first candidate, or None without candidates"""
    if not isinstance(payload, dict):
        return None
    candidates = payload.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


def block_reason(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    return (payload.get("promptFeedback") or {}).get("blockReason")


def stream_frame_text(frame: Any) -> Optional[str]:
    text = candidate_text(frame)
    if text is None and block_reason(frame):
        raise StreamError(f"Prompt blocked: {block_reason(frame)}")
    return text


def gemini_error(status_code: int, body: str) -> QueryError:
    # Gemini answers a bad key with 400/403 and an API_KEY_INVALID reason
    if status_code in (400, 403) and "API_KEY_INVALID" in body:
        return InvalidKeyError()
    return error_for_status(status_code, body)


class GeminiBackend(LLMBackend):
    """Gemini generateContent / streamGenerateContent over httpx"""

    provider = Provider.GEMINI
    default_model = GEMINI_DEFAULT_MODEL

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        settings: Optional[ModelSettings] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key, model=model, settings=settings)
        self.base_url = (base_url or GEMINI_API_URL).rstrip("/")
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=API_TIMEOUT)

    def _url(self, method: str) -> str:
        return f"{self.base_url}/models/{self.model}:{method}"

    def _build_request(self, prompt: str, max_tokens: Optional[int] = None) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {"temperature": self.settings.temperature}
        max_tokens = max_tokens if max_tokens is not None else self.settings.max_tokens
        if max_tokens is not None:
            generation_config["maxOutputTokens"] = max_tokens
        return {
            "systemInstruction": {"parts": [{"text": self.system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

    async def _post(self, method: str, body: Dict[str, Any]) -> httpx.Response:
        try:
            response = await self.client.post(self._url(method), params={"key": self.api_key}, json=body)
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error: {exc}") from exc
        if response.is_error:
            logger.debug(f"Gemini API error response: {response.text}")
            raise gemini_error(response.status_code, response.text)
        return response

    async def send_query(self, prompt: str) -> str:
        response = await self._post("generateContent", self._build_request(prompt))
        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiError(f"Failed to parse response: {exc}") from exc

        text = candidate_text(payload)
        if text is None:
            reason = block_reason(payload)
            raise ApiError(f"Prompt blocked: {reason}" if reason else "No response candidates")
        logger.log_api_request(self.model, len(prompt), len(text))
        return text

    async def send_streaming_query(self, prompt: str) -> AsyncIterator[str]:
        params = {"key": self.api_key, "alt": "sse"}
        received = 0
        try:
            async with self.client.stream(
                "POST", self._url("streamGenerateContent"), params=params, json=self._build_request(prompt)
            ) as response:
                if response.is_error:
                    await response.aread()
                    logger.debug(f"Gemini API error response (streaming): {response.text}")
                    raise gemini_error(response.status_code, response.text)
                async for text in iter_sse_text(response.aiter_bytes(), stream_frame_text):
                    received += len(text)
                    yield text
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error while streaming: {exc}") from exc
        logger.log_api_request(self.model, len(prompt), received)

    async def validate_key(self) -> None:
        await self._post("generateContent", self._build_request("test", max_tokens=1))

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
