"""Shared test fixtures."""

import asyncio
from unittest.mock import MagicMock

import pytest

from assistant_link.config import LinkConfig
from assistant_link.flows.controller import AuthFlowController
from assistant_link.service.base import (
    AuthStatus,
    HandshakeSession,
    IntegrationService,
    IntegrationStatus,
)


class FakeService(IntegrationService):
    """메모리 기반 연동 서비스.

    n번째 handshake는 (sb{n}, u{n}, s{n}) 세션을 반환.
    *_gate 이벤트를 설정하면 해당 호출이 이벤트가 set될 때까지 대기.
    """

    def __init__(self):
        self.handshake_calls: list[str] = []
        self.poll_calls: list[str] = []
        self.submit_calls: list[tuple] = []
        self.disconnect_calls: list[str] = []
        self.status_calls = 0

        self.poll_results: dict[str, AuthStatus] = {}
        self.connected = False

        self.handshake_error: Exception | None = None
        self.submit_error: Exception | None = None
        self.disconnect_error: Exception | None = None
        self.status_error: Exception | None = None

        self.handshake_gate: asyncio.Event | None = None
        self.submit_gate: asyncio.Event | None = None

    def publish_url(self, session_id: str, url: str) -> None:
        self.poll_results[session_id] = AuthStatus(state="waiting_code", oauth_url=url)

    async def begin_handshake(self, context_id: str) -> HandshakeSession:
        self.handshake_calls.append(context_id)
        n = len(self.handshake_calls)
        if self.handshake_gate is not None:
            await self.handshake_gate.wait()
        if self.handshake_error is not None:
            raise self.handshake_error
        return HandshakeSession(sandbox_id=f"sb{n}", sandbox_url=f"u{n}", session_id=f"s{n}")

    async def poll_status(self, context_id, sandbox_url, session_id) -> AuthStatus:
        self.poll_calls.append(session_id)
        return self.poll_results.get(session_id, AuthStatus(state="idle"))

    async def submit_authorization_code(
        self, context_id, sandbox_id, sandbox_url, session_id, code
    ) -> None:
        self.submit_calls.append((context_id, sandbox_id, sandbox_url, session_id, code))
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if self.submit_error is not None:
            raise self.submit_error
        self.connected = True

    async def disconnect_integration(self, context_id) -> None:
        self.disconnect_calls.append(context_id)
        if self.disconnect_error is not None:
            raise self.disconnect_error
        self.connected = False

    async def get_integration_status(self, context_id) -> IntegrationStatus:
        self.status_calls += 1
        if self.status_error is not None:
            raise self.status_error
        return IntegrationStatus(is_connected=self.connected)


@pytest.fixture
def service():
    return FakeService()


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def opener():
    return MagicMock()


@pytest.fixture
def fast_config():
    return LinkConfig(api_url="https://example.test", poll_interval=0.01, auto_submit_delay=0.01)


@pytest.fixture
def controller(service, notifier, opener, fast_config):
    return AuthFlowController(service, notifier=notifier, open_url=opener, config=fast_config)


@pytest.fixture
def wait_until():
    """조건이 참이 될 때까지 이벤트 루프를 양보."""

    async def _wait(predicate, timeout: float = 2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not reached before timeout")
            await asyncio.sleep(0.005)

    return _wait
