"""Container startup probing and request forwarding."""

import asyncio
from enum import Enum
from typing import Iterable, Literal, Optional

import httpx

from mcp_sandbox.managers.container_handle import ContainerHandle
from mcp_sandbox.utils import get_logger
from mcp_sandbox.utils.exceptions import ContainerConfigurationError
from mcp_sandbox.utils.http_client import get_http_client

logger = get_logger(__name__)

Environment = Literal["dev", "test", "prod"]

PORT_PROBE_MAX_ATTEMPTS = 10
PORT_PROBE_RETRY_DELAY_S = 0.3

# Message fragments of failures that resolve once the container finishes scheduling
TRANSIENT_ERROR_MARKERS = (
    "listening",
    "there is no container instance that can be provided",
)

# Placeholder host used when addressing the container server
CONTAINER_HOST_PLACEHOLDER = "host"

# Exit monitors started while waiting for a port; results are only logged
_exit_monitors: set[asyncio.Task] = set()


class ErrorClass(str, Enum):
    """Whether a startup failure is worth retrying."""

    TRANSIENT = "transient"
    FATAL = "fatal"


def classify_error(
    error: BaseException, markers: Optional[Iterable[str]] = None
) -> ErrorClass:
    """
    Classify a port connection failure.

    Args:
        error: Exception raised while starting or connecting to the container
        markers: Message fragments marking transient failures

    Returns:
        ErrorClass.TRANSIENT if the message contains any marker, else ErrorClass.FATAL
    """
    message = str(error)
    for marker in markers if markers is not None else TRANSIENT_ERROR_MARKERS:
        if marker in message:
            return ErrorClass.TRANSIENT
    return ErrorClass.FATAL


def _on_exit_monitor_done(task: asyncio.Task) -> None:
    _exit_monitors.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("Container exit monitor failed", extra={"error": str(error)})
    else:
        logger.info("Container exited", extra={"status": task.result()})


def _watch_exit(container: ContainerHandle) -> None:
    task = asyncio.create_task(container.monitor())
    _exit_monitors.add(task)
    task.add_done_callback(_on_exit_monitor_done)


async def ensure_port_ready(
    environment: Environment,
    container: ContainerHandle | None,
    port: int,
    max_attempts: int = PORT_PROBE_MAX_ATTEMPTS,
    *,
    retry_delay_s: float = PORT_PROBE_RETRY_DELAY_S,
    transient_markers: Optional[Iterable[str]] = None,
) -> bool:
    """
    Start the container if needed and wait until ``port`` accepts connections.

    In dev and test modes the container server is assumed to run locally and
    nothing is started.

    Args:
        environment: Runtime mode
        container: Container handle (may be None outside prod)
        port: Port to wait for
        max_attempts: Maximum connection attempts
        retry_delay_s: Delay between attempts after a transient failure
        transient_markers: Message fragments marking transient failures

    Returns:
        True once connected, False on a fatal failure or when attempts run out

    Raises:
        ContainerConfigurationError: If running in prod without a container handle
    """
    if environment in ("dev", "test"):
        logger.info(
            "Assuming locally running container",
            extra={"environment": environment, "port": port},
        )
        return True

    if container is None:
        raise ContainerConfigurationError()

    markers = list(transient_markers) if transient_markers is not None else None
    tcp_port = container.get_tcp_port(port)

    for attempt in range(1, max_attempts + 1):
        try:
            if not container.running:
                logger.info("Starting container", extra={"attempt": attempt})
                container.start(enable_internet=True)
                _watch_exit(container)

            conn = await tcp_port.connect()
            await conn.close()
            logger.info("Connected to container", extra={"port": port, "attempt": attempt})
            return True
        except Exception as e:
            error_class = classify_error(e, markers)
            logger.warning(
                "Error connecting to the container",
                extra={
                    "port": port,
                    "attempt": attempt,
                    "error": str(e),
                    "error_class": error_class.value,
                },
            )
            if error_class is ErrorClass.FATAL:
                return False
            await asyncio.sleep(retry_delay_s)

    logger.error(
        "Container port never became ready",
        extra={"port": port, "max_attempts": max_attempts},
    )
    return False


def _clone_request(request: httpx.Request, url: httpx.URL) -> httpx.Request:
    return httpx.Request(
        request.method,
        url,
        headers=[(k, v) for k, v in request.headers.multi_items() if k.lower() != "host"],
        content=request.content,
    )


async def proxy_fetch(
    environment: Environment,
    container: ContainerHandle | None,
    request: httpx.Request,
    port: int,
    *,
    client: httpx.AsyncClient | None = None,
    dev_host: str = "localhost",
) -> httpx.Response:
    """
    Forward a request to the container server.

    The request is cloned, so the caller's request object stays usable. There
    is no retry at this layer.

    Args:
        environment: Runtime mode
        container: Container handle (may be None outside prod)
        request: Request addressed to ``http://host:<port>/...``
        port: Container port to forward to
        client: HTTP client for dev/test passthrough (defaults to the shared client)
        dev_host: Host serving the container API in dev and test modes

    Returns:
        The container's response

    Raises:
        ContainerConfigurationError: If running in prod without a container handle
    """
    url = request.url
    if url.scheme == "https":
        url = url.copy_with(scheme="http")

    if environment in ("dev", "test"):
        if url.host == CONTAINER_HOST_PLACEHOLDER:
            url = url.copy_with(host=dev_host)
        return await (client or get_http_client()).send(_clone_request(request, url))

    if container is None:
        raise ContainerConfigurationError()

    return await container.get_tcp_port(port).fetch(str(url), _clone_request(request, url))
