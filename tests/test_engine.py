import asyncio

import pytest

from q_cli.backends import LLMBackend
from q_cli.cache import ResponseCache
from q_cli.engine import QueryConfig, QueryEngine
from q_cli.errors import CacheError, ErrorKind, InvalidKeyError, NetworkError, RetryError, StreamError
from q_cli.models import Provider
from q_cli.stream import RenderSink


class MockBackend(LLMBackend):
    """Streams fixed chunks; ``failures`` are raised by the first attempts."""

    provider = Provider.OPENAI
    default_model = "mock-model"

    def __init__(self, chunks=("Hello", ", ", "world!"), failures=(), mid_stream_error=None):
        super().__init__("mock-key")
        self.chunks = list(chunks)
        self.failures = list(failures)
        self.mid_stream_error = mid_stream_error
        self.stream_calls = 0
        self.query_calls = 0

    async def send_query(self, prompt):
        self.query_calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "".join(self.chunks)

    async def send_streaming_query(self, prompt):
        self.stream_calls += 1
        if self.failures:
            raise self.failures.pop(0)
        for chunk in self.chunks:
            yield chunk
            if self.mid_stream_error is not None:
                raise self.mid_stream_error

    async def validate_key(self):
        pass


class RecordingSink(RenderSink):
    def __init__(self):
        self.written = []

    def write(self, text):
        self.written.append(text)


async def no_sleep(delay):
    pass


def make_engine(backend, sink=None, **overrides):
    settings = dict(max_retries=3, retry_delay=0.01, max_retry_delay=0.1)
    settings.update(overrides)
    return QueryEngine(backend, QueryConfig(**settings), sink=sink, sleep=no_sleep)


def test_streaming_query_accumulates_chunks():
    backend = MockBackend()
    sink = RecordingSink()
    engine = make_engine(backend, sink=sink)

    assert asyncio.run(engine.query("test")) == "Hello, world!"
    assert sink.written == ["Hello", ", ", "world!"]


def test_successful_response_is_cached():
    backend = MockBackend()
    engine = make_engine(backend)

    async def twice():
        return await engine.query("test"), await engine.query("test")

    first, second = asyncio.run(twice())

    assert first == second == "Hello, world!"
    assert backend.stream_calls == 1
    assert engine.cache.get("test") == "Hello, world!"


def test_mid_stream_error_caches_nothing():
    backend = MockBackend(mid_stream_error=StreamError("Simulated error"))
    engine = make_engine(backend)

    with pytest.raises(RetryError) as excinfo:
        asyncio.run(engine.query("test"))

    assert "Simulated error" in str(excinfo.value)
    assert excinfo.value.kind is ErrorKind.STREAM
    assert engine.cache.is_empty()


def test_network_failures_are_retried():
    backend = MockBackend(failures=[NetworkError("down"), NetworkError("still down")])
    engine = make_engine(backend)

    assert asyncio.run(engine.query("test")) == "Hello, world!"
    assert backend.stream_calls == 3


def test_invalid_key_fails_immediately():
    backend = MockBackend(failures=[InvalidKeyError()])
    engine = make_engine(backend)

    with pytest.raises(RetryError) as excinfo:
        asyncio.run(engine.query("test"))

    assert excinfo.value.kind is ErrorKind.INVALID_KEY
    assert backend.stream_calls == 1


def test_non_streaming_mode_uses_send_query():
    backend = MockBackend()
    engine = make_engine(backend, stream=False)

    assert asyncio.run(engine.query("test")) == "Hello, world!"
    assert backend.query_calls == 1
    assert backend.stream_calls == 0


def test_cache_can_be_disabled():
    backend = MockBackend()
    engine = make_engine(backend, use_cache=False)

    async def twice():
        await engine.query("test")
        await engine.query("test")

    asyncio.run(twice())

    assert backend.stream_calls == 2
    assert engine.cache.is_empty()


def test_hidden_progress_skips_the_sink():
    sink = RecordingSink()
    engine = make_engine(MockBackend(), sink=sink, show_progress=False)

    asyncio.run(engine.query("test"))

    assert sink.written == []


def test_cache_failure_degrades_to_backend_call():
    class BrokenCache(ResponseCache):
        def get(self, prompt):
            raise CacheError("lock timeout")

        def insert(self, prompt, response):
            raise CacheError("lock timeout")

    backend = MockBackend()
    engine = QueryEngine(backend, QueryConfig(), cache=BrokenCache(), sleep=no_sleep)

    assert asyncio.run(engine.query("test")) == "Hello, world!"
    assert backend.stream_calls == 1


def test_uses_provided_cache():
    cache = ResponseCache(max_size=5, ttl=60)
    cache.insert("test", "cached answer")
    backend = MockBackend()
    engine = QueryEngine(backend, cache=cache, sleep=no_sleep)

    assert asyncio.run(engine.query("test")) == "cached answer"
    assert backend.stream_calls == 0
