#!/usr/bin/env python

"""
Query engine: cache lookup, retried dispatch to a backend, cache insert.

One engine owns one backend and one cache. Only successful responses are
cached; a failed or cancelled query leaves the cache as it was.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .backends import LLMBackend
from .cache import ResponseCache
from .constants import (
    DEFAULT_CACHE_TTL, DEFAULT_MAX_CACHE_SIZE, DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY, DEFAULT_RETRY_DELAY,
)
from .errors import CacheError
from .logger import logger
from .retry import with_backoff
from .stream import RenderSink, StreamRenderer


@dataclass(frozen=True)
class QueryConfig:
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY
    cache_ttl: float = DEFAULT_CACHE_TTL
    max_cache_size: int = DEFAULT_MAX_CACHE_SIZE
    stream: bool = True
    show_progress: bool = True
    use_cache: bool = True


class QueryEngine:
    def __init__(
        self,
        backend: LLMBackend,
        config: Optional[QueryConfig] = None,
        cache: Optional[ResponseCache] = None,
        sink: Optional[RenderSink] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self.config = config or QueryConfig()
        self.cache = cache if cache is not None else ResponseCache(
            max_size=self.config.max_cache_size,
            ttl=self.config.cache_ttl,
        )
        self.renderer = StreamRenderer(sink if self.config.show_progress else None)
        self._sleep = sleep

    async def query(self, prompt: str) -> str:
        """Answer ``prompt`` from the cache or the backend.

        Raises:
            RetryError: the backend failed and retrying did not help.
        """
        cached = self._cache_get(prompt)
        if cached is not None:
            return cached

        async def operation() -> str:
            if self.config.stream:
                return await self.renderer.collect(self.backend.send_streaming_query(prompt))
            return await self.renderer.wait(self.backend.send_query(prompt))

        response = await with_backoff(
            operation,
            self.config.max_retries,
            self.config.retry_delay,
            self.config.max_retry_delay,
            sleep=self._sleep,
        )

        self._cache_put(prompt, response)
        return response

    def _cache_get(self, prompt: str) -> Optional[str]:
        if not self.config.use_cache:
            return None
        try:
            cached = self.cache.get(prompt)
        except CacheError as e:
            logger.warning(f"Cache lookup failed, querying backend: {e}")
            return None
        logger.log_cache_event("hit" if cached is not None else "miss", prompt)
        return cached

    def _cache_put(self, prompt: str, response: str) -> None:
        if not self.config.use_cache:
            return
        try:
            self.cache.insert(prompt, response)
        except CacheError as e:
            logger.warning(f"Could not cache response: {e}")
            return
        logger.log_cache_event("store", prompt)
