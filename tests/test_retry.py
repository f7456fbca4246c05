"""Tests for retry backoff."""

import asyncio

import pytest

from stoz.errors import RequestFailed
from stoz.retry import backoff_delay, retry_with_backoff


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def flaky(failures, result="ok", error=RequestFailed("busy")):
    calls = []

    async def fn():
        calls.append(1)
        if len(calls) <= failures:
            raise error
        return result

    return fn, calls


class TestBackoff:
    def test_delays_grow_and_cap(self):
        delays = [backoff_delay(n, 1.0, 10.0, 2.0) for n in range(6)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    def test_succeeds_after_failures(self):
        sleep = RecordingSleep()
        fn, calls = flaky(2)
        assert asyncio.run(retry_with_backoff(fn, sleep=sleep)) == "ok"
        assert len(calls) == 3
        assert sleep.delays == [1.0, 2.0]

    def test_reraises_last_error(self):
        sleep = RecordingSleep()
        fn, calls = flaky(10)
        with pytest.raises(RequestFailed, match="busy"):
            asyncio.run(retry_with_backoff(fn, max_retries=3, max_delay=3.0, sleep=sleep))
        assert len(calls) == 4
        assert sleep.delays == [1.0, 2.0, 3.0]

    def test_other_errors_not_retried(self):
        sleep = RecordingSleep()
        fn, calls = flaky(1, error=KeyError("x"))
        with pytest.raises(KeyError):
            asyncio.run(retry_with_backoff(fn, sleep=sleep))
        assert len(calls) == 1
        assert sleep.delays == []
