"""
Pytest configuration and common fixtures for persista tests.

Provides a recording in-memory store driver so the core can be exercised
without a running database.
"""

import asyncio
from typing import Any

import pytest

from persista.core.context import StoreContext
from persista.core.logging.context import clear_context
from persista.database.statement import Statement


class FakeSession:
    """Session that records every call in order."""

    def __init__(self, driver: "FakeDriver"):
        self.driver = driver
        self.calls: list[str] = []
        self.executed: list[Statement] = []

    def _control(self, name: str) -> None:
        self.calls.append(name)
        error = self.driver.fail_on.get(name)
        if error is not None:
            raise error

    async def pause_flow_control(self) -> None:
        self._control("pause")

    async def resume_flow_control(self) -> None:
        self._control("resume")

    async def begin(self) -> None:
        self._control("BEGIN")

    async def commit(self) -> None:
        self._control("COMMIT")

    async def rollback(self) -> None:
        self._control("ROLLBACK")

    async def execute(self, statement: Statement) -> Any:
        await asyncio.sleep(0)
        self.calls.append(statement.command)
        self.executed.append(statement)
        return self.driver.respond(statement)


class FakeDriver:
    """
    In-memory StoreDriver.

    ``responses`` maps a command to a value or to a callable receiving the
    statement; exceptions found there are raised. ``fail_on`` maps session
    control calls ("BEGIN", "COMMIT", "ROLLBACK", "pause", "resume") to errors.
    """

    name = "fake"

    def __init__(self):
        self.open_calls = 0
        self.close_calls = 0
        self.open_delay = 0.0
        self.open_error: Exception | None = None
        self.connection = object()
        self.responses: dict[str, Any] = {}
        self.fail_on: dict[str, Exception] = {}
        self.executed: list[Statement] = []
        self.sessions: list[FakeSession] = []

    async def open(self) -> Any:
        self.open_calls += 1
        await asyncio.sleep(self.open_delay)
        if self.open_error is not None:
            raise self.open_error
        return self.connection

    async def close(self, connection: Any) -> None:
        self.close_calls += 1

    def prepare(self, statement: Statement) -> Statement:
        return statement

    def respond(self, statement: Statement) -> Any:
        response = self.responses.get(statement.command)
        if callable(response) and not isinstance(response, type):
            response = response(statement)
        if isinstance(response, BaseException):
            raise response
        return response

    async def execute(self, connection: Any, statement: Statement) -> Any:
        assert connection is self.connection
        self.executed.append(statement)
        return self.respond(statement)

    async def open_session(self, connection: Any) -> FakeSession:
        session = FakeSession(self)
        self.sessions.append(session)
        return session

    async def health_check(self, connection: Any) -> bool:
        return True

    async def get_connection_info(self, connection: Any) -> dict[str, Any]:
        return {"driver": "fake"}


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def context(fake_driver: FakeDriver) -> StoreContext:
    return StoreContext(driver=fake_driver)


@pytest.fixture(autouse=True)
def reset_logging_context():
    """Keep store/transaction ids from leaking between tests."""
    clear_context()
    yield
    clear_context()


# Environment setup for tests
@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    monkeypatch.setenv("PERSISTA_ENVIRONMENT", "PROD")
    monkeypatch.setenv("PERSISTA_LOG_LEVEL", "DEBUG")
