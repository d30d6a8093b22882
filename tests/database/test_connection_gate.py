"""
Tests for the Connection Gate: single open under concurrency, failure reset,
timeouts and close.
"""

import asyncio
import gc

import pytest

from persista.core.errors import ConnectionClosedError, ConnectionTimeoutError
from persista.database.gate import ConnectionGate


class CountingOpener:
    def __init__(self, delay: float = 0.01, errors: list[Exception] | None = None):
        self.calls = 0
        self.delay = delay
        self.errors = list(errors or [])

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.errors:
            raise self.errors.pop(0)
        return object()


@pytest.mark.asyncio
class TestConnectionGate:
    async def test_concurrent_acquire_opens_once(self):
        opener = CountingOpener()
        gate = ConnectionGate(opener, name="test")

        connections = await asyncio.gather(*(gate.acquire() for _ in range(25)))

        assert opener.calls == 1
        assert all(conn is connections[0] for conn in connections)
        assert gate.is_open

    async def test_acquire_after_open_reuses_connection(self):
        opener = CountingOpener(delay=0)
        gate = ConnectionGate(opener)

        first = await gate.acquire()
        second = await gate.acquire()

        assert first is second
        assert opener.calls == 1

    async def test_failure_reaches_every_waiter(self):
        error = OSError("auth failed")
        opener = CountingOpener(errors=[error])
        gate = ConnectionGate(opener)

        results = await asyncio.gather(
            *(gate.acquire() for _ in range(5)), return_exceptions=True
        )

        assert opener.calls == 1
        assert all(result is error for result in results)
        assert not gate.is_open
        assert not gate.is_opening

    async def test_failure_resets_so_next_call_retries(self):
        opener = CountingOpener(delay=0, errors=[OSError("refused")])
        gate = ConnectionGate(opener)

        with pytest.raises(OSError, match="refused"):
            await gate.acquire()

        connection = await gate.acquire()

        assert connection is not None
        assert opener.calls == 2
        assert gate.is_open

    async def test_timeout_does_not_cancel_open_for_others(self):
        opener = CountingOpener(delay=0.05)
        gate = ConnectionGate(opener, name="slow", timeout=0.01)

        with pytest.raises(ConnectionTimeoutError) as exc_info:
            await gate.acquire()

        assert exc_info.value.store == "slow"
        assert isinstance(exc_info.value, TimeoutError)

        # The open carried on in the background
        await asyncio.sleep(0.08)
        assert gate.is_open
        assert opener.calls == 1

    async def test_close_disposes_and_allows_reopen(self):
        closed = []
        opener = CountingOpener(delay=0)

        async def closer(connection):
            closed.append(connection)

        gate = ConnectionGate(opener, closer=closer)
        first = await gate.acquire()

        await gate.close()

        assert closed == [first]
        assert not gate.is_open

        second = await gate.acquire()
        assert second is not first
        assert opener.calls == 2

    async def test_close_without_connection_is_noop(self):
        closer_calls = []

        async def closer(connection):
            closer_calls.append(connection)

        gate = ConnectionGate(CountingOpener(), closer=closer)
        await gate.close()

        assert closer_calls == []

    async def test_store_timeout_error_is_not_relabelled(self):
        class DriverTimeout(TimeoutError):
            pass

        error = DriverTimeout("connect timed out inside the driver")
        gate = ConnectionGate(CountingOpener(delay=0, errors=[error]), timeout=5)

        with pytest.raises(DriverTimeout) as exc_info:
            await gate.acquire()

        assert exc_info.value is error
        assert not isinstance(exc_info.value, ConnectionTimeoutError)

    async def test_failed_open_after_every_waiter_timed_out_is_retrieved(self):
        reported = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda loop, context: reported.append(context))
        gate = ConnectionGate(
            CountingOpener(delay=0.02, errors=[OSError("refused")]), timeout=0.005
        )

        with pytest.raises(ConnectionTimeoutError):
            await gate.acquire()
        await asyncio.sleep(0.04)
        gc.collect()

        assert not gate.is_opening
        assert reported == []

    async def test_close_during_open_discards_late_connection(self):
        closed = []
        opener = CountingOpener(delay=0.02)

        async def closer(connection):
            closed.append(connection)

        gate = ConnectionGate(opener, name="pg", closer=closer)
        pending = asyncio.ensure_future(gate.acquire())
        await asyncio.sleep(0.005)

        await gate.close()

        with pytest.raises(ConnectionClosedError) as exc_info:
            await pending
        assert exc_info.value.store == "pg"
        assert not gate.is_open
        assert len(closed) == 1

        fresh = await gate.acquire()
        assert fresh is not closed[0]
        assert opener.calls == 2
        assert gate.is_open
