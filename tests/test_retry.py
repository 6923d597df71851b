import asyncio

import pytest

from q_cli.errors import (
    ApiError, ErrorKind, InvalidKeyError, NetworkError, RateLimitError, RetryError, StreamError,
)
from q_cli.retry import should_retry, with_backoff


class FlakyOperation:
    """Fails with the given errors in order, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def run(coro):
    return asyncio.run(coro)


@pytest.mark.parametrize("error, expected", [
    (NetworkError("down"), True),
    (RateLimitError(), True),
    (InvalidKeyError(), False),
    (StreamError("bad frame"), False),
    (ApiError("boom", status_code=500), False),
    (ValueError("not a query error"), False),
])
def test_should_retry(error, expected):
    assert should_retry(error) is expected


def test_succeeds_on_third_attempt(sleeps):
    operation = FlakyOperation([NetworkError("Simulated network error"), RateLimitError()])

    result = run(with_backoff(operation, 3, 0.01, 0.1, sleep=sleeps))

    assert result == "ok"
    assert operation.calls == 3
    assert sleeps.calls == [0.01, 0.02]


def test_gives_up_after_max_retries_attempts(sleeps):
    operation = FlakyOperation([NetworkError("Always fails")] * 5)

    with pytest.raises(RetryError) as excinfo:
        run(with_backoff(operation, 2, 0.01, 0.1, sleep=sleeps))

    assert operation.calls == 2
    assert excinfo.value.attempts == 2
    assert excinfo.value.kind is ErrorKind.NETWORK
    assert "Always fails" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, NetworkError)


def test_invalid_key_is_not_retried(sleeps):
    operation = FlakyOperation([InvalidKeyError(), NetworkError("never reached")])

    with pytest.raises(RetryError) as excinfo:
        run(with_backoff(operation, 5, 0.01, 0.1, sleep=sleeps))

    assert operation.calls == 1
    assert sleeps.calls == []
    assert excinfo.value.kind is ErrorKind.INVALID_KEY


def test_zero_retries_still_makes_one_attempt(sleeps):
    success = FlakyOperation([])
    assert run(with_backoff(success, 0, 0.01, 0.1, sleep=sleeps)) == "ok"
    assert success.calls == 1

    failing = FlakyOperation([NetworkError("down")])
    with pytest.raises(RetryError):
        run(with_backoff(failing, 0, 0.01, 0.1, sleep=sleeps))
    assert failing.calls == 1
    assert sleeps.calls == []


def test_delay_doubles_and_is_capped(sleeps):
    operation = FlakyOperation([NetworkError("down")] * 5)

    run(with_backoff(operation, 6, 1.0, 3.0, sleep=sleeps))

    assert sleeps.calls == [1.0, 2.0, 3.0, 3.0, 3.0]


def test_deadline_stops_retrying(sleeps, clock):
    operation = FlakyOperation([NetworkError("slow")] * 5)

    async def slow_sleep(delay):
        await sleeps(delay)
        clock.advance(delay * 10)

    with pytest.raises(RetryError) as excinfo:
        run(with_backoff(operation, 5, 1.0, 2.0, sleep=slow_sleep, clock=clock))

    assert "deadline" in str(excinfo.value)
    assert operation.calls < 5


def test_non_query_errors_propagate_untouched(sleeps):
    async def broken():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        run(with_backoff(broken, 3, 0.01, 0.1, sleep=sleeps))
    assert sleeps.calls == []


def test_zero_delays_still_retry(sleeps):
    operation = FlakyOperation([NetworkError("down"), NetworkError("down")])

    assert run(with_backoff(operation, 3, 0.0, 0.0, sleep=sleeps)) == "ok"
    assert operation.calls == 3
    assert sleeps.calls == [0.0, 0.0]


def test_attempt_count_in_message():
    assert "after 1 attempt:" in str(RetryError(NetworkError("down"), 1))
    assert "after 3 attempts:" in str(RetryError(NetworkError("down"), 3))
