"""MCP Sandbox server implementation using FastMCP 2."""

import sys
from contextlib import asynccontextmanager

from fastmcp import FastMCP
from fastmcp.server.dependencies import get_access_token

from mcp_sandbox import __version__
from mcp_sandbox.auth import create_auth_provider
from mcp_sandbox.config import get_settings
from mcp_sandbox.managers.container_manager import get_container_manager
from mcp_sandbox.managers.maintenance_manager import get_maintenance_manager
from mcp_sandbox.managers.user_container import UserContainer, get_user_containers
from mcp_sandbox.mcp_tools import (
    ContainerMessageOutput,
    ExecOutput,
    ExecParams,
    FileDeleteOutput,
    FileList,
    FilePathParam,
    FileReadOutput,
    FileWrite,
    HealthOutput,
    MetricsOutput,
)
from mcp_sandbox.models.database import close_db, init_db
from mcp_sandbox.prompts import BASE_INSTRUCTIONS
from mcp_sandbox.utils import get_logger, setup_logging
from mcp_sandbox.utils.audit_logger import AuditEventType, get_audit_logger
from mcp_sandbox.utils.docker_client import close_docker_client
from mcp_sandbox.utils.exceptions import ContainerFileNotFoundError
from mcp_sandbox.utils.files import strip_protocol_from_file_path
from mcp_sandbox.utils.http_client import close_http_client
from mcp_sandbox.utils.metrics_collector import get_metrics_collector

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Lifespan context manager for startup and shutdown tasks."""
    settings = get_settings()
    logger.info(
        "Starting MCP Sandbox server",
        extra={"version": __version__, "environment": settings.environment},
    )

    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize database", extra={"error": str(e)})
        raise

    try:
        await get_maintenance_manager().start()
    except Exception as e:
        logger.warning("Failed to start maintenance", extra={"error": str(e)})

    get_audit_logger().log_event(AuditEventType.SYSTEM_STARTUP)

    yield

    logger.info("Shutting down MCP Sandbox server")
    get_audit_logger().log_event(AuditEventType.SYSTEM_SHUTDOWN)

    try:
        await get_maintenance_manager().stop()
    except Exception as e:
        logger.warning("Failed to stop maintenance", extra={"error": str(e)})

    await close_http_client()
    await close_db()
    close_docker_client()
    logger.info("MCP Sandbox server stopped")


mcp = FastMCP("MCP Sandbox", instructions=BASE_INSTRUCTIONS, lifespan=lifespan)


def _current_user_id() -> str:
    """Identify the calling user from the access token, falling back to the default user."""
    token = get_access_token()
    if token is not None:
        claims = getattr(token, "claims", None) or {}
        return claims.get("sub") or token.client_id
    return get_settings().default_user_id


def _user_container(user_id: str) -> UserContainer:
    return get_user_containers().for_user(user_id)


@mcp.tool()
async def container_initialize() -> ContainerMessageOutput:
    """
    Start or restart the container.

    Use this tool to initialize a container before running any python or node.js
    code that the user requests to run.
    """
    user_id = _current_user_id()
    audit_logger = get_audit_logger()

    if user_id in get_settings().user_blocklist_set:
        logger.warning("Blocked user tried to initialize a container", extra={"user_id": user_id})
        audit_logger.log_event(AuditEventType.SECURITY_BLOCKED_USER, user_id=user_id)
        return ContainerMessageOutput(message="Blocked from initializing container.")

    session = _user_container(user_id)
    try:
        message = await session.initialize()
    except Exception as e:
        logger.error(
            "Failed to initialize container",
            extra={"container_id": session.container_id, "error": str(e)},
        )
        raise

    audit_logger.log_event(
        AuditEventType.CONTAINER_INITIALIZE,
        container_id=session.container_id,
        user_id=user_id,
    )
    return ContainerMessageOutput(message=message)


@mcp.tool()
async def container_ping() -> ContainerMessageOutput:
    """Ping the container for liveliness. Use this tool to check if the container is running."""
    session = _user_container(_current_user_id())
    return ContainerMessageOutput(message=await session.ping())


@mcp.tool()
async def container_kill() -> ContainerMessageOutput:
    """Stop and remove the container. Call container_initialize to get a new one."""
    user_id = _current_user_id()
    session = _user_container(user_id)

    killed = await session.kill_container()
    if killed:
        get_audit_logger().log_event(
            AuditEventType.CONTAINER_KILL, container_id=session.container_id, user_id=user_id
        )
        return ContainerMessageOutput(message="Killed container")
    return ContainerMessageOutput(message="No active container")


@mcp.tool()
async def container_exec(input_data: ExecParams) -> ExecOutput:
    """
    Run a command in a container and return the results from stdout.

    If necessary, set a timeout. To debug, stream back standard error.
    """
    user_id = _current_user_id()
    session = _user_container(user_id)

    logger.info(
        "Executing command",
        extra={"container_id": session.container_id, "args": input_data.args},
    )
    try:
        output = await session.exec(input_data)
    except Exception as e:
        logger.error("Failed to execute command", extra={"error": str(e)})
        raise

    get_audit_logger().log_event(
        AuditEventType.CONTAINER_EXEC,
        container_id=session.container_id,
        user_id=user_id,
        details={"args": input_data.args, "timeout": input_data.timeout},
    )
    return ExecOutput(output=output)


@mcp.tool()
async def container_files_list() -> FileList:
    """List working directory file tree. This only lists the files, not their contents."""
    user_id = _current_user_id()
    session = _user_container(user_id)

    files = await session.list_files()
    get_audit_logger().log_event(
        AuditEventType.FS_LIST,
        container_id=session.container_id,
        user_id=user_id,
        details={"count": len(files.resources)},
    )
    return files


@mcp.tool()
async def container_file_read(input_data: FilePathParam) -> FileReadOutput:
    """Read a specific file or directory."""
    user_id = _current_user_id()
    session = _user_container(user_id)

    try:
        contents = await session.read_file(input_data.path)
    except ContainerFileNotFoundError as e:
        logger.warning("File not found", extra={"path": e.path})
        raise

    get_audit_logger().log_event(
        AuditEventType.FS_READ,
        container_id=session.container_id,
        user_id=user_id,
        details={"path": contents.path, "mime_type": contents.mime_type},
    )
    return FileReadOutput(
        uri=contents.uri,
        content=contents.content,
        mime_type=contents.mime_type,
        encoding=contents.encoding,
        is_directory=contents.is_directory,
        entries=contents.entries,
    )


@mcp.tool()
async def container_file_write(input_data: FileWrite) -> ContainerMessageOutput:
    """
    Create a new file with the provided contents in the working directory,
    overwriting the file if it already exists.
    """
    user_id = _current_user_id()
    session = _user_container(user_id)

    message = await session.write_file(input_data)
    get_audit_logger().log_event(
        AuditEventType.FS_WRITE,
        container_id=session.container_id,
        user_id=user_id,
        details={"path": strip_protocol_from_file_path(input_data.path), "size": len(input_data.text)},
    )
    return ContainerMessageOutput(message=message)


@mcp.tool()
async def container_file_delete(input_data: FilePathParam) -> FileDeleteOutput:
    """Delete a file or directory in the working directory."""
    user_id = _current_user_id()
    session = _user_container(user_id)
    path = strip_protocol_from_file_path(input_data.path)

    deleted = await session.delete_file(input_data.path)
    get_audit_logger().log_event(
        AuditEventType.FS_DELETE,
        container_id=session.container_id,
        user_id=user_id,
        details={"path": path, "deleted": deleted},
    )
    return FileDeleteOutput(path=path, deleted=deleted, message=f"File deleted: {deleted}.")


@mcp.tool()
async def health() -> HealthOutput:
    """Report server status and how many sandbox containers are active."""
    settings = get_settings()
    active = await get_container_manager().list_active()
    at_capacity = len(active) >= settings.max_containers

    return HealthOutput(
        status="at_capacity" if at_capacity else "healthy",
        environment=settings.environment,
        active_containers=len(active),
        max_containers=settings.max_containers,
        version=__version__,
    )


@mcp.tool()
async def metrics() -> MetricsOutput:
    """Get Prometheus metrics for container lifecycle and proxied requests."""
    metrics_data = get_metrics_collector().get_metrics().decode("utf-8")
    return MetricsOutput(metrics=metrics_data)


def main() -> None:
    """Main entry point for the MCP Sandbox server."""
    settings = get_settings()

    setup_logging(log_level=settings.log_level, log_format=settings.log_format)

    mcp.auth = create_auth_provider()

    logger.info(
        "Starting server",
        extra={
            "transport": settings.transport_mode,
            "auth_mode": settings.auth_mode,
            "environment": settings.environment,
            "max_containers": settings.max_containers,
        },
    )

    try:
        run_kwargs = {"transport": settings.transport_mode}
        if settings.transport_mode in ("sse", "streamable-http"):
            run_kwargs["host"] = settings.host
            run_kwargs["port"] = settings.port
            run_kwargs["path"] = settings.path

        mcp.run(**run_kwargs)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down")
        sys.exit(0)
    except Exception as e:
        logger.error("Server error", extra={"error": str(e)})
        sys.exit(1)


if __name__ == "__main__":
    main()
