#!/usr/bin/env python

"""Bounded, time-expiring response cache keyed by exact prompt text.

Eviction is by insertion order: reading an entry does not refresh it, so when
the cache is full the oldest *inserted* prompt goes first.
"""

import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Tuple

from .constants import CACHE_LOCK_TIMEOUT, DEFAULT_CACHE_TTL, DEFAULT_MAX_CACHE_SIZE
from .errors import CacheError


class ResponseCache:
    def __init__(
        self,
        max_size: int = DEFAULT_MAX_CACHE_SIZE,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        lock_timeout: float = CACHE_LOCK_TIMEOUT,
    ):
        if max_size < 0:
            raise ValueError("max_size must not be negative")
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._lock_timeout = lock_timeout
        self._lock = threading.Lock()
        # prompt -> (response, inserted_at), oldest first
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise CacheError("Timed out waiting for the cache lock")
        try:
            yield
        finally:
            self._lock.release()

    def _is_expired(self, inserted_at: float, now: float) -> bool:
        return now - inserted_at > self.ttl

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (_, inserted_at) in self._entries.items()
                   if self._is_expired(inserted_at, now)]
        for key in expired:
            del self._entries[key]

    def get(self, prompt: str) -> Optional[str]:
        """Return the cached response for ``prompt`` if present and not expired."""
        with self._locked():
            entry = self._entries.get(prompt)
            if entry is None:
                return None
            response, inserted_at = entry
            if self._is_expired(inserted_at, self._clock()):
                del self._entries[prompt]
                return None
            return response

    def insert(self, prompt: str, response: str) -> None:
        """Store a response, evicting the oldest inserted entry when full."""
        if self.max_size == 0:
            return
        with self._locked():
            now = self._clock()
            if prompt in self._entries:
                del self._entries[prompt]
            elif len(self._entries) >= self.max_size:
                self._purge_expired(now)
                while len(self._entries) >= self.max_size:
                    self._entries.popitem(last=False)
            self._entries[prompt] = (response, now)

    def clear(self) -> None:
        with self._locked():
            self._entries.clear()

    def len(self) -> int:
        """Number of live (unexpired) entries"""
        with self._locked():
            self._purge_expired(self._clock())
            return len(self._entries)

    def __len__(self) -> int:
        return self.len()

    def is_empty(self) -> bool:
        return self.len() == 0
