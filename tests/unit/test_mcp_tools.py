"""Unit tests for MCP tool endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from mcp_sandbox import server
from mcp_sandbox.config.settings import Settings
from mcp_sandbox.managers.user_container import UserContainer
from mcp_sandbox.mcp_tools import (
    ExecParams,
    FileContents,
    FileList,
    FilePathParam,
    FileResource,
    FileWrite,
)
from mcp_sandbox.utils.audit_logger import AuditEventType
from mcp_sandbox.utils.exceptions import ContainerCapacityError, ContainerFileNotFoundError


@pytest.fixture
def session():
    """Mock user container session."""
    mock = MagicMock()
    mock.container_id = "abc123"
    for name in (
        "initialize",
        "ping",
        "kill_container",
        "exec",
        "list_files",
        "read_file",
        "write_file",
        "delete_file",
    ):
        setattr(mock, name, AsyncMock())
    return mock


@pytest.fixture
def audit_logger():
    return MagicMock()


@pytest.fixture
def tool_env(session, audit_logger):
    """Route tools to the mock session for user alice."""
    namespace = MagicMock()
    namespace.for_user.return_value = session
    settings = Settings(user_blocklist="mallory")

    with (
        patch("mcp_sandbox.server.get_user_containers", return_value=namespace),
        patch("mcp_sandbox.server._current_user_id", return_value="alice"),
        patch("mcp_sandbox.server.get_audit_logger", return_value=audit_logger),
        patch("mcp_sandbox.server.get_settings", return_value=settings),
    ):
        yield namespace


@pytest.mark.asyncio
async def test_container_initialize(tool_env, session, audit_logger):
    session.initialize.return_value = "Created new container"

    result = await server.container_initialize.fn()

    assert result.message == "Created new container"
    tool_env.for_user.assert_called_once_with("alice")
    audit_logger.log_event.assert_called_once_with(
        AuditEventType.CONTAINER_INITIALIZE, container_id="abc123", user_id="alice"
    )


@pytest.mark.asyncio
async def test_container_initialize_blocked_user(tool_env, session, audit_logger):
    with patch("mcp_sandbox.server._current_user_id", return_value="mallory"):
        result = await server.container_initialize.fn()

    assert result.message == "Blocked from initializing container."
    session.initialize.assert_not_called()
    assert audit_logger.log_event.call_args[0][0] == AuditEventType.SECURITY_BLOCKED_USER


@pytest.mark.asyncio
async def test_container_initialize_propagates_errors(tool_env, session, audit_logger):
    session.initialize.side_effect = ContainerCapacityError(50)

    with pytest.raises(ContainerCapacityError):
        await server.container_initialize.fn()

    audit_logger.log_event.assert_not_called()


@pytest.mark.asyncio
async def test_container_ping(tool_env, session):
    session.ping.return_value = "pong"

    result = await server.container_ping.fn()

    assert result.message == "pong"


@pytest.mark.asyncio
async def test_container_kill(tool_env, session, audit_logger):
    session.kill_container.return_value = True

    result = await server.container_kill.fn()

    assert result.message == "Killed container"
    assert audit_logger.log_event.call_args[0][0] == AuditEventType.CONTAINER_KILL


@pytest.mark.asyncio
async def test_container_kill_without_container(tool_env, session, audit_logger):
    session.kill_container.return_value = False

    result = await server.container_kill.fn()

    assert result.message == "No active container"
    audit_logger.log_event.assert_not_called()


@pytest.mark.asyncio
async def test_container_exec(tool_env, session, audit_logger):
    session.exec.return_value = "hi\nProcess exited with code: 0"
    params = ExecParams(args="echo hi", timeout=1000)

    result = await server.container_exec.fn(params)

    assert result.output.endswith("Process exited with code: 0")
    session.exec.assert_awaited_once_with(params)
    details = audit_logger.log_event.call_args[1]["details"]
    assert details == {"args": "echo hi", "timeout": 1000}


@pytest.mark.asyncio
async def test_container_files_list(tool_env, session):
    files = FileList(resources=[FileResource(uri="file:///a.txt", name="a.txt")])
    session.list_files.return_value = files

    assert await server.container_files_list.fn() is files


@pytest.mark.asyncio
async def test_container_file_read(tool_env, session):
    session.read_file.return_value = FileContents(
        path="/workdir/a.txt", content="hi", mime_type="text/plain", encoding="text"
    )

    result = await server.container_file_read.fn(FilePathParam(path="file:///workdir/a.txt"))

    session.read_file.assert_awaited_once_with("file:///workdir/a.txt")
    assert result.uri == "file:///workdir/a.txt"
    assert result.content == "hi"
    assert result.encoding == "text"


@pytest.mark.asyncio
async def test_container_file_read_missing(tool_env, session):
    session.read_file.side_effect = ContainerFileNotFoundError("/nope")

    with pytest.raises(ContainerFileNotFoundError):
        await server.container_file_read.fn(FilePathParam(path="/nope"))


@pytest.mark.asyncio
async def test_container_file_write(tool_env, session, audit_logger):
    session.write_file.return_value = "Wrote file: /workdir/a.txt"
    data = FileWrite(path="file:///workdir/a.txt", text="hello")

    result = await server.container_file_write.fn(data)

    assert result.message == "Wrote file: /workdir/a.txt"
    assert audit_logger.log_event.call_args[1]["details"] == {"path": "/workdir/a.txt", "size": 5}


@pytest.mark.asyncio
async def test_container_file_delete(tool_env, session):
    session.delete_file.return_value = False

    result = await server.container_file_delete.fn(FilePathParam(path="file:///workdir/a.txt"))

    session.delete_file.assert_awaited_once_with("file:///workdir/a.txt")
    assert result.path == "/workdir/a.txt"
    assert result.deleted is False
    assert result.message == "File deleted: False."


@pytest.mark.asyncio
async def test_health():
    manager = MagicMock()
    manager.list_active = AsyncMock(return_value=["a", "b"])
    settings = Settings(max_containers=2, environment="test")

    with (
        patch("mcp_sandbox.server.get_container_manager", return_value=manager),
        patch("mcp_sandbox.server.get_settings", return_value=settings),
    ):
        result = await server.health.fn()

    assert result.status == "at_capacity"
    assert result.environment == "test"
    assert result.active_containers == 2
    assert result.max_containers == 2


@pytest.mark.asyncio
async def test_metrics():
    collector = MagicMock()
    collector.get_metrics.return_value = b"# HELP mcp_sandbox_active_containers\n"

    with patch("mcp_sandbox.server.get_metrics_collector", return_value=collector):
        result = await server.metrics.fn()

    assert result.metrics.startswith("# HELP mcp_sandbox_active_containers")


def test_current_user_id_defaults_without_token():
    with (
        patch("mcp_sandbox.server.get_access_token", return_value=None),
        patch("mcp_sandbox.server.get_settings", return_value=Settings(default_user_id="local")),
    ):
        assert server._current_user_id() == "local"


def test_current_user_id_prefers_subject_claim():
    token = MagicMock()
    token.claims = {"sub": "user-42"}
    token.client_id = "client"

    with patch("mcp_sandbox.server.get_access_token", return_value=token):
        assert server._current_user_id() == "user-42"


def test_current_user_id_falls_back_to_client_id():
    token = MagicMock()
    token.claims = {}
    token.client_id = "anonymous"

    with patch("mcp_sandbox.server.get_access_token", return_value=token):
        assert server._current_user_id() == "anonymous"


@pytest.mark.asyncio
async def test_container_file_read_directory(tool_env, session):
    session.read_file.return_value = FileContents(
        path="/workdir/src",
        content="file:///workdir/src/a.py\nfile:///workdir/src/b.py",
        mime_type="text/directory",
        encoding="text",
    )

    result = await server.container_file_read.fn(FilePathParam(path="file:///workdir/src"))

    assert result.is_directory is True
    assert result.entries == ["file:///workdir/src/a.py", "file:///workdir/src/b.py"]


@pytest.mark.asyncio
async def test_container_file_read_regular_file_has_no_entries(tool_env, session):
    session.read_file.return_value = FileContents(
        path="/workdir/a.txt", content="a\nb", mime_type="text/plain", encoding="text"
    )

    result = await server.container_file_read.fn(FilePathParam(path="/workdir/a.txt"))

    assert result.is_directory is False
    assert result.entries == []


@pytest.mark.asyncio
async def test_file_tools_strip_protocol_once(
    container_manager, test_settings, metrics, mock_transport_factory, audit_logger
):
    """Delete and read of a doubly prefixed path address the same container file."""
    client, requests = mock_transport_factory(
        lambda request: httpx.Response(200, text="x", headers={"content-type": "text/plain"})
    )
    real_session = UserContainer(
        "abc123", None, container_manager, settings=test_settings, http_client=client, metrics=metrics
    )
    namespace = MagicMock()
    namespace.for_user.return_value = real_session
    path = "file://file:///a"

    with (
        patch("mcp_sandbox.server.get_user_containers", return_value=namespace),
        patch("mcp_sandbox.server._current_user_id", return_value="alice"),
        patch("mcp_sandbox.server.get_audit_logger", return_value=audit_logger),
    ):
        deleted = await server.container_file_delete.fn(FilePathParam(path=path))
        read = await server.container_file_read.fn(FilePathParam(path=path))

    assert [request.method for request in requests] == ["DELETE", "GET"]
    assert [request.url.path for request in requests] == [
        "/files/contents/file:///a",
        "/files/contents/file:///a",
    ]
    assert deleted.path == "file:///a"
    assert read.uri == "file://file:///a"
    assert audit_logger.log_event.call_args_list[0][1]["details"]["path"] == "file:///a"
