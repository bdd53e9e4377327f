"""Per-user sandbox session owning one container's lifecycle."""

import asyncio
import json
import uuid
from typing import Any, Callable, Dict, Optional

import httpx

from mcp_sandbox.config import Settings, get_settings
from mcp_sandbox.managers.container_handle import ContainerHandle, DockerContainerHandle
from mcp_sandbox.managers.container_helpers import ensure_port_ready, proxy_fetch
from mcp_sandbox.managers.container_manager import ContainerManager, get_container_manager
from mcp_sandbox.mcp_tools import ExecParams, FileContents, FileList, FileWrite
from mcp_sandbox.utils import get_logger
from mcp_sandbox.utils.exceptions import (
    ContainerCapacityError,
    ContainerFileNotFoundError,
    ContainerRequestError,
    ContainerStartError,
)
from mcp_sandbox.utils.files import (
    file_to_base64,
    is_text_mime_type,
    normalize_mime_type,
    strip_protocol_from_file_path,
)
from mcp_sandbox.utils.metrics_collector import MetricsCollector, get_metrics_collector

logger = get_logger(__name__)

# Namespace for deriving stable container identifiers from user names
SESSION_ID_NAMESPACE = uuid.UUID("6f1c7c8e-3d1a-4b8e-9a57-0c2f4e1d9b30")

HandleFactory = Callable[[str], Optional[ContainerHandle]]


class UserContainer:
    """
    Controller for one sandbox container.

    Operations on one session never interleave: every proxied request and the
    startup sequence hold the session lock.
    """

    def __init__(
        self,
        container_id: str,
        container: ContainerHandle | None,
        manager: ContainerManager,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """
        Initialize the session.

        Args:
            container_id: Identifier tracked in the registry
            container: Container handle (None in dev and test modes)
            manager: Shared container registry
            settings: Settings (defaults to the cached settings)
            http_client: Client for dev/test passthrough requests
            metrics: Metrics collector
        """
        self.container_id = container_id
        self.container = container
        self.manager = manager
        self.settings = settings or get_settings()
        self.http_client = http_client
        self.metrics = metrics or get_metrics_collector()
        self._lock = asyncio.Lock()

    @property
    def environment(self) -> str:
        return self.settings.environment

    def _url(self, path: str) -> str:
        return f"http://host:{self.settings.container_port}{path}"

    @staticmethod
    def _contents_path(path: str) -> str:
        return f"/files/contents/{path.lstrip('/')}"

    def _record_start(self, status: str) -> None:
        try:
            self.metrics.record_container_start(status)
        except Exception as e:
            logger.warning("Failed to record container start", extra={"error": str(e)})

    def _record_request(self, operation: str, status: str) -> None:
        try:
            self.metrics.record_container_request(operation, status)
        except Exception as e:
            logger.warning(
                "Failed to record container request",
                extra={"operation": operation, "error": str(e)},
            )

    async def destroy_container(self) -> None:
        """Tear down the underlying container, if this session has one."""
        if self.container is not None:
            await self.container.destroy()
            logger.info("Container destroyed", extra={"container_id": self.container_id})

    async def kill_container(self) -> bool:
        """
        Destroy this session's container if the registry considers it active.

        Returns:
            True if a container was killed
        """
        active = await self.manager.list_active()
        if self.container_id not in active:
            return False

        logger.info("Killing container", extra={"container_id": self.container_id})
        await self.destroy_container()
        await self.manager.kill(self.container_id)
        return True

    async def initialize(self) -> str:
        """
        Start a fresh container for this session.

        Raises:
            ContainerCapacityError: If the registry is still full after reaping idle containers
            ContainerStartError: If the container never became reachable

        Returns:
            Confirmation message
        """
        await self.kill_container()

        if len(await self.manager.list_active()) >= self.settings.reap_threshold:
            reaped = await self.manager.reap_idle()
            logger.info(
                "Reaped idle containers before start",
                extra={"container_id": self.container_id, "reaped": len(reaped)},
            )

        if len(await self.manager.list_active()) >= self.settings.max_containers:
            self._record_start("capacity")
            raise ContainerCapacityError(self.settings.max_containers)

        async with self._lock:
            started = await ensure_port_ready(
                self.environment,
                self.container,
                self.settings.container_port,
                self.settings.port_probe_max_attempts,
                retry_delay_s=self.settings.port_probe_retry_delay_s,
                transient_markers=self.settings.transient_error_markers_list,
            )

        if not started:
            self._record_start("failure")
            raise ContainerStartError(self.container_id)

        await self.manager.track(self.container_id)
        self._record_start("success")
        logger.info("Container started", extra={"container_id": self.container_id})

        return "Created new container"

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        payload: Dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = {}
        content = None
        if payload is not None:
            headers["content-type"] = "application/json"
            content = json.dumps(payload).encode("utf-8")

        request = httpx.Request(method, self._url(path), headers=headers, content=content)
        async with self._lock:
            try:
                response = await proxy_fetch(
                    self.environment,
                    self.container,
                    request,
                    self.settings.container_port,
                    client=self.http_client,
                    dev_host=self.settings.dev_host,
                )
            except Exception:
                self._record_request(operation, "failure")
                raise

        status = "success" if response.is_success else "failure"
        self._record_request(operation, status)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if not response.is_success:
            raise ContainerRequestError(response.text, status_code=response.status_code)

    async def ping(self) -> str:
        """Check that the container server answers."""
        response = await self._request("ping", "GET", "/ping")
        self._raise_for_status(response)
        return response.text

    async def exec(self, params: ExecParams) -> str:
        """
        Run a shell command in the container.

        Args:
            params: Command line, timeout and stderr streaming flag

        Returns:
            Streamed output, ending with the process exit code line
        """
        response = await self._request(
            "exec", "POST", "/exec", params.model_dump(by_alias=True, exclude_none=True)
        )
        self._raise_for_status(response)
        return response.text

    async def list_files(self) -> FileList:
        """List the working directory tree."""
        response = await self._request("ls", "GET", "/files/ls")
        self._raise_for_status(response)
        return FileList.model_validate(response.json())

    async def read_file(self, path: str) -> FileContents:
        """
        Read a file or directory.

        Text types (and directory listings) are returned as text, anything
        else base64 encoded.

        Args:
            path: Path, optionally prefixed with file://

        Raises:
            ContainerFileNotFoundError: If the path does not exist
            ContainerRequestError: If the container reports any other failure
        """
        path = strip_protocol_from_file_path(path)
        response = await self._request("read", "GET", self._contents_path(path))
        if response.status_code == 404:
            raise ContainerFileNotFoundError(path, response.text)
        self._raise_for_status(response)

        mime_type = normalize_mime_type(response.headers.get("content-type"))
        if is_text_mime_type(mime_type):
            return FileContents(path=path, content=response.text, mime_type=mime_type, encoding="text")
        return FileContents(
            path=path,
            content=file_to_base64(response.content),
            mime_type=mime_type,
            encoding="base64",
        )

    async def write_file(self, file: FileWrite) -> str:
        """
        Create or overwrite a file.

        Args:
            file: Path, optionally prefixed with file://, and full text content

        Returns:
            Confirmation message
        """
        path = strip_protocol_from_file_path(file.path)
        response = await self._request(
            "write", "POST", "/files/contents", {"path": path, "text": file.text}
        )
        self._raise_for_status(response)
        return f"Wrote file: {path}"

    async def delete_file(self, path: str) -> bool:
        """
        Delete a file or directory.

        Args:
            path: Path, optionally prefixed with file://

        Returns:
            Whether the container reported success
        """
        path = strip_protocol_from_file_path(path)
        response = await self._request("delete", "DELETE", self._contents_path(path))
        return response.is_success


def docker_handle_factory(container_id: str) -> ContainerHandle:
    """Create the Docker-backed handle for a session."""
    return DockerContainerHandle(f"mcp-sandbox-{container_id}")


class UserContainerNamespace:
    """Derives session identifiers from names and hands out one session per identifier."""

    def __init__(
        self,
        manager: ContainerManager | None = None,
        settings: Settings | None = None,
        handle_factory: HandleFactory | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the namespace.

        Args:
            manager: Shared container registry
            settings: Settings (defaults to the cached settings)
            handle_factory: Builds container handles (Docker in prod, none in dev/test)
            http_client: Client for dev/test passthrough requests
        """
        self.settings = settings or get_settings()
        self.manager = manager or get_container_manager()
        if handle_factory is None and self.settings.environment == "prod":
            handle_factory = docker_handle_factory
        self.handle_factory = handle_factory
        self.http_client = http_client
        self._sessions: Dict[str, UserContainer] = {}

    @staticmethod
    def id_from_name(name: str) -> str:
        """Derive the stable container identifier for a name (e.g. a user ID)."""
        return uuid.uuid5(SESSION_ID_NAMESPACE, name).hex

    def get(self, container_id: str) -> UserContainer:
        """Get the session for a container identifier, creating it on first use."""
        session = self._sessions.get(container_id)
        if session is None:
            handle = self.handle_factory(container_id) if self.handle_factory else None
            session = UserContainer(
                container_id,
                handle,
                self.manager,
                settings=self.settings,
                http_client=self.http_client,
            )
            self._sessions[container_id] = session
        return session

    def for_user(self, user_id: str) -> UserContainer:
        """Get the session belonging to a user."""
        return self.get(self.id_from_name(user_id))


_user_containers: UserContainerNamespace | None = None


def get_user_containers() -> UserContainerNamespace:
    """Get the global user container namespace."""
    global _user_containers
    if _user_containers is None:
        _user_containers = UserContainerNamespace()
    return _user_containers
