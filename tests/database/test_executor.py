"""
Tests for the Statement Executor and the StoreContext wiring around it.
"""

import asyncio

import pytest

from persista.core.config.settings import StoreConfig
from persista.core.context import StoreContext, init
from persista.core.errors import (
    AlreadyConnectedError,
    NotConfiguredError,
    StatementTimeoutError,
)
from persista.database.statement import Statement


@pytest.mark.asyncio
class TestExecute:
    async def test_execute_opens_connection_and_returns_raw_result(
        self, context, fake_driver
    ):
        fake_driver.responses["SELECT $1"] = {"rows": [1]}

        result = await context.execute("SELECT $1", [1])

        assert result == {"rows": [1]}
        assert fake_driver.open_calls == 1
        assert fake_driver.executed == [Statement("SELECT $1", (1,))]

    async def test_params_argument_replaces_statement_params(self, context, fake_driver):
        await context.execute(Statement("SELECT $1", (1,)), [2])

        assert fake_driver.executed[0].params == (2,)

    async def test_statement_error_propagates_verbatim(self, context, fake_driver):
        error = LookupError("relation does not exist")
        fake_driver.responses["SELECT * FROM missing"] = error

        with pytest.raises(LookupError) as exc_info:
            await context.execute("SELECT * FROM missing")

        assert exc_info.value is error

    async def test_connection_error_propagates_verbatim(self, context, fake_driver):
        fake_driver.open_error = PermissionError("bad password")

        with pytest.raises(PermissionError, match="bad password"):
            await context.execute("SELECT 1")

        assert fake_driver.executed == []

    async def test_concurrent_executes_share_one_open(self, context, fake_driver):
        fake_driver.open_delay = 0.01

        await asyncio.gather(*(context.execute("SELECT 1") for _ in range(10)))

        assert fake_driver.open_calls == 1
        assert len(fake_driver.executed) == 10

    async def test_callback_receives_result(self, context, fake_driver):
        fake_driver.responses["SELECT 1"] = 1
        received = []

        result = await context.execute(
            "SELECT 1", callback=lambda err, res: received.append((err, res))
        )

        assert result == 1
        assert received == [(None, 1)]

    async def test_callback_receives_error_instead_of_raise(self, context, fake_driver):
        error = RuntimeError("boom")
        fake_driver.responses["SELECT 1"] = error
        received = []

        result = await context.execute(
            "SELECT 1", callback=lambda err, res: received.append((err, res))
        )

        assert result is None
        assert received == [(error, None)]

    async def test_statement_timeout(self, fake_driver):
        async def slow(statement):
            await asyncio.sleep(0.05)

        fake_driver.execute = lambda connection, statement: slow(statement)
        context = StoreContext(StoreConfig(statement_timeout=0.01), driver=fake_driver)

        with pytest.raises(StatementTimeoutError, match="SELECT pg_sleep"):
            await context.execute("SELECT pg_sleep(1)")

    async def test_store_timeout_error_propagates_unchanged(self, fake_driver):
        class DriverTimeout(TimeoutError):
            pass

        error = DriverTimeout("canceling statement due to statement timeout")
        fake_driver.responses["SELECT 1"] = error
        context = StoreContext(StoreConfig(statement_timeout=5), driver=fake_driver)

        with pytest.raises(DriverTimeout) as exc_info:
            await context.execute("SELECT 1")

        assert exc_info.value is error
        assert not isinstance(exc_info.value, StatementTimeoutError)

    async def test_store_timeout_error_without_deadline(self, context, fake_driver):
        error = TimeoutError("driver gave up")
        fake_driver.responses["SELECT 1"] = error

        with pytest.raises(TimeoutError) as exc_info:
            await context.execute("SELECT 1")

        assert exc_info.value is error


@pytest.mark.asyncio
class TestStoreContext:
    async def test_unconfigured_context_raises(self):
        context = init()

        with pytest.raises(NotConfiguredError):
            await context.execute("SELECT 1")

    async def test_configure_before_first_operation(self, fake_driver):
        context = init()
        context.configure(StoreConfig(), driver=fake_driver)

        await context.execute("SELECT 1")

        assert context.is_connected
        assert context.store == "fake"

    async def test_configure_after_open_is_rejected(self, context, fake_driver):
        await context.acquire()

        with pytest.raises(AlreadyConnectedError):
            context.configure(StoreConfig(), driver=fake_driver)

    async def test_close_and_reopen(self, context, fake_driver):
        async with context:
            await context.execute("SELECT 1")

        assert fake_driver.close_calls == 1
        assert not context.is_connected

        await context.execute("SELECT 1")
        assert fake_driver.open_calls == 2

    async def test_health_check_and_info(self, context):
        assert await context.health_check() is True
        assert await context.get_connection_info() == {"driver": "fake"}

    async def test_init_rejects_unknown_config(self):
        with pytest.raises(TypeError, match="No store driver"):
            init(StoreConfig())
