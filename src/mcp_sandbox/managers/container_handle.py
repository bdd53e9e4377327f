"""Container handle capabilities and their Docker-backed implementation."""

import asyncio
from typing import Any, Protocol, runtime_checkable

import httpx
from docker import DockerClient
from docker.errors import APIError, NotFound
from docker.models.containers import Container as DockerContainer

from mcp_sandbox.config import Settings, get_settings
from mcp_sandbox.utils import get_logger
from mcp_sandbox.utils.docker_client import get_docker_client
from mcp_sandbox.utils.exceptions import (
    ContainerNotScheduledError,
    ContainerPortNotListeningError,
    DockerAPIError,
)
from mcp_sandbox.utils.http_client import get_http_client

logger = get_logger(__name__)

CONTAINER_LABEL = "com.mcp.sandbox"


class PortConnection(Protocol):
    """An open probe connection to a container port."""

    async def close(self) -> None: ...


class TcpPort(Protocol):
    """A container port that can be connected to or fetched from."""

    async def connect(self) -> PortConnection: ...

    async def fetch(self, url: str, request: httpx.Request) -> httpx.Response: ...


@runtime_checkable
class ContainerHandle(Protocol):
    """Capabilities of the container backing one sandbox session."""

    @property
    def running(self) -> bool: ...

    def start(self, enable_internet: bool = True) -> None: ...

    async def monitor(self) -> Any: ...

    def get_tcp_port(self, port: int) -> TcpPort: ...

    async def destroy(self) -> None: ...


class _SocketConnection:
    def __init__(self, writer: asyncio.StreamWriter) -> None:
        self._writer = writer

    async def close(self) -> None:
        self._writer.close()
        await self._writer.wait_closed()


class DockerTcpPort:
    """A port of a Docker sandbox container, addressed through the container's bridge IP."""

    def __init__(self, handle: "DockerContainerHandle", port: int) -> None:
        self.handle = handle
        self.port = port

    async def connect(self) -> _SocketConnection:
        """
        Open a TCP connection to the port.

        Raises:
            ContainerNotScheduledError: If the container has no running instance yet
            ContainerPortNotListeningError: If nothing accepts connections on the port yet
        """
        host = self.handle.address()
        try:
            _, writer = await asyncio.open_connection(host, self.port)
        except OSError as e:
            raise ContainerPortNotListeningError(self.port) from e
        return _SocketConnection(writer)

    async def fetch(self, url: str, request: httpx.Request) -> httpx.Response:
        """
        Send a request to the port, keeping the path and query of ``url``.

        Args:
            url: Request URL; its host and port are replaced by the container's
            request: Request supplying method, headers and body

        Returns:
            Response from the container
        """
        target = httpx.URL(url).copy_with(host=self.handle.address(), port=self.port)
        headers = {k: v for k, v in request.headers.items() if k.lower() != "host"}
        forwarded = httpx.Request(request.method, target, headers=headers, content=request.content)
        return await self.handle.http_client.send(forwarded)


class DockerContainerHandle:
    """Runs one sandbox session's container on the local Docker daemon."""

    def __init__(
        self,
        name: str,
        docker_client: DockerClient | None = None,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the handle.

        Args:
            name: Docker container name
            docker_client: Docker client (defaults to the shared client)
            settings: Settings (defaults to the cached settings)
            http_client: HTTP client used for fetches (defaults to the shared client)
        """
        self.name = name
        self.settings = settings or get_settings()
        self.docker_client = docker_client or get_docker_client()
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client or get_http_client()

    def _get(self) -> DockerContainer | None:
        try:
            return self.docker_client.containers.get(self.name)
        except NotFound:
            return None

    @property
    def running(self) -> bool:
        container = self._get()
        return container is not None and container.status == "running"

    def start(self, enable_internet: bool = True) -> None:
        """
        Create the container if needed and start it.

        Args:
            enable_internet: Attach to the bridge network instead of no network

        Raises:
            DockerAPIError: If Docker refuses to create or start the container
        """
        try:
            container = self._get()
            if container is None:
                container = self.docker_client.containers.create(
                    image=self.settings.container_image,
                    name=self.name,
                    labels={CONTAINER_LABEL: "true", f"{CONTAINER_LABEL}.name": self.name},
                    detach=True,
                    network_mode="bridge" if enable_internet else "none",
                    mem_limit=self.settings.container_memory_limit,
                    cpu_quota=self.settings.container_cpu_quota,
                    pids_limit=self.settings.container_pids_limit,
                )
                logger.info(
                    "Docker container created",
                    extra={"name": self.name, "image": self.settings.container_image},
                )

            container.start()
            logger.info("Docker container started", extra={"name": self.name})
        except APIError as e:
            logger.error("Docker API error starting container", extra={"error": str(e)})
            raise DockerAPIError(f"Failed to start container: {e}", e)

    async def monitor(self) -> int | None:
        """
        Wait until the container exits.

        Returns:
            Exit status code, or None if the container does not exist
        """
        container = self._get()
        if container is None:
            return None
        result = await asyncio.to_thread(container.wait)
        return result.get("StatusCode")

    def get_tcp_port(self, port: int) -> DockerTcpPort:
        return DockerTcpPort(self, port)

    def address(self) -> str:
        """
        Resolve the container's IP address.

        Raises:
            ContainerNotScheduledError: If the container is not running or has no address yet
        """
        container = self._get()
        if container is None or container.status != "running":
            raise ContainerNotScheduledError(self.name)

        networks = container.attrs.get("NetworkSettings", {}).get("Networks", {})
        for network in networks.values():
            if network.get("IPAddress"):
                return network["IPAddress"]
        raise ContainerNotScheduledError(self.name)

    async def destroy(self) -> None:
        """
        Force-remove the container. Removing an absent container is a no-op.

        Raises:
            DockerAPIError: If Docker fails to remove the container
        """
        container = self._get()
        if container is None:
            return

        try:
            container.remove(force=True, v=True)
            logger.info("Docker container removed", extra={"name": self.name})
        except NotFound:
            pass
        except APIError as e:
            logger.error("Docker API error removing container", extra={"error": str(e)})
            raise DockerAPIError(f"Failed to remove container: {e}", e)
