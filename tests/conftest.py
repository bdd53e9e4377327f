"""Test configuration and fixtures."""

from typing import Any, AsyncGenerator, Callable, Dict, List

import httpx
import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry

from mcp_sandbox.config.settings import Settings
from mcp_sandbox.managers.container_manager import ContainerManager
from mcp_sandbox.models.database import DatabaseManager
from mcp_sandbox.utils.metrics_collector import MetricsCollector


class FakeConnection:
    """Probe connection that records whether it was closed."""

    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class FakeTcpPort:
    """TCP port whose connect attempts follow a scripted list of outcomes."""

    def __init__(self, outcomes: List[Any] | None = None) -> None:
        # Each outcome is an exception to raise or None for success
        self.outcomes = list(outcomes or [])
        self.connect_calls = 0
        self.connections: List[FakeConnection] = []
        self.fetched: List[tuple[str, httpx.Request]] = []
        self.response = httpx.Response(200, text="ok")

    async def connect(self) -> FakeConnection:
        self.connect_calls += 1
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if outcome is not None:
            raise outcome
        conn = FakeConnection()
        self.connections.append(conn)
        return conn

    async def fetch(self, url: str, request: httpx.Request) -> httpx.Response:
        self.fetched.append((url, request))
        return self.response


class FakeContainerHandle:
    """In-memory container handle."""

    def __init__(self, port: FakeTcpPort | None = None, running: bool = False) -> None:
        self.port = port or FakeTcpPort()
        self.running = running
        self.start_calls = 0
        self.destroy_calls = 0
        self.destroy_error: Exception | None = None
        self.ports_requested: List[int] = []

    def start(self, enable_internet: bool = True) -> None:
        self.start_calls += 1
        self.running = True

    async def monitor(self) -> int:
        return 0

    def get_tcp_port(self, port: int) -> FakeTcpPort:
        self.ports_requested.append(port)
        return self.port

    async def destroy(self) -> None:
        self.destroy_calls += 1
        if self.destroy_error is not None:
            raise self.destroy_error
        self.running = False


class FakeSession:
    """Session stand-in used by the registry when reaping."""

    def __init__(self, container_id: str, fail: bool = False) -> None:
        self.container_id = container_id
        self.fail = fail
        self.destroyed = 0

    async def destroy_container(self) -> None:
        self.destroyed += 1
        if self.fail:
            raise RuntimeError(f"cannot destroy {self.container_id}")


class FakeSessionLookup:
    """Session lookup that hands out FakeSession instances."""

    def __init__(self, failing: tuple[str, ...] = ()) -> None:
        self.failing = set(failing)
        self.sessions: Dict[str, FakeSession] = {}

    def get(self, container_id: str) -> FakeSession:
        if container_id not in self.sessions:
            self.sessions[container_id] = FakeSession(
                container_id, fail=container_id in self.failing
            )
        return self.sessions[container_id]


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector backed by an isolated registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def test_settings() -> Settings:
    """Settings for dev/test passthrough mode."""
    return Settings(environment="test", max_containers=4, port_probe_retry_delay_s=0)


@pytest.fixture
def prod_settings() -> Settings:
    """Settings for prod mode with no retry delay."""
    return Settings(environment="prod", max_containers=4, port_probe_retry_delay_s=0)


@pytest_asyncio.fixture
async def db_manager() -> AsyncGenerator[DatabaseManager, None]:
    """In-memory registry database."""
    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
def session_lookup() -> FakeSessionLookup:
    return FakeSessionLookup()


@pytest.fixture
def container_manager(db_manager, session_lookup, metrics) -> ContainerManager:
    """Registry over the in-memory database with a 15 minute idle timeout."""
    return ContainerManager(
        db_manager=db_manager,
        sessions=session_lookup,
        metrics=metrics,
        idle_timeout_s=900,
    )


@pytest.fixture
def mock_transport_factory():
    """Build an AsyncClient answered by a handler, plus the list of requests it received."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]):
        requests: List[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
        return client, requests

    return factory


@pytest.fixture
def make_handle():
    """Build a fake container handle whose port connects after the scripted failures."""

    def factory(outcomes: List[Any] | None = None, running: bool = False) -> FakeContainerHandle:
        return FakeContainerHandle(FakeTcpPort(outcomes), running=running)

    return factory
