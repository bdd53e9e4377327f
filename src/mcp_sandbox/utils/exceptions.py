"""Custom exceptions for MCP Sandbox."""


class MCPSandboxError(Exception):
    """Base exception for MCP Sandbox errors."""

    pass


class ContainerError(MCPSandboxError):
    """Base exception for container-related errors."""

    pass


class ContainerConfigurationError(ContainerError):
    """Exception raised when container orchestration is attempted without a container handle."""

    def __init__(self, message: str | None = None) -> None:
        """
        Initialize ContainerConfigurationError.

        Args:
            message: Optional override for the error message
        """
        super().__init__(
            message
            or "Container handle is undefined. Does this session support containers?"
        )


class ContainerStartError(ContainerError):
    """Exception raised when a container could not be started or never became reachable."""

    def __init__(self, container_id: str) -> None:
        """
        Initialize ContainerStartError.

        Args:
            container_id: Container that failed to start
        """
        self.container_id = container_id
        super().__init__("Failed to start container")


class ContainerCapacityError(ContainerError):
    """Exception raised when the active container limit is still reached after reaping."""

    def __init__(self, limit: int) -> None:
        """
        Initialize ContainerCapacityError.

        Args:
            limit: Maximum number of active containers
        """
        self.limit = limit
        super().__init__(
            f"Unable to reap enough containers. There are {limit} active container "
            "sandboxes, please wait"
        )


class ContainerRequestError(ContainerError):
    """Exception raised when the in-container server answers with a non-2xx status."""

    def __init__(self, body: str, status_code: int | None = None) -> None:
        """
        Initialize ContainerRequestError.

        Args:
            body: Response body returned by the container
            status_code: HTTP status code of the response
        """
        self.body = body
        self.status_code = status_code
        super().__init__(f"Request to container failed: {body}")


class ContainerFileNotFoundError(ContainerRequestError):
    """Exception raised when a file or directory does not exist inside the container."""

    def __init__(self, path: str, body: str = "") -> None:
        """
        Initialize ContainerFileNotFoundError.

        Args:
            path: Path that was not found
            body: Response body returned by the container
        """
        self.path = path
        super().__init__(body or f"File not found: {path}", status_code=404)


class ContainerPortNotListeningError(ContainerError):
    """Exception raised when the container is up but its port does not accept connections yet."""

    def __init__(self, port: int) -> None:
        """
        Initialize ContainerPortNotListeningError.

        Args:
            port: Port that refused the connection
        """
        self.port = port
        super().__init__(f"The container is not listening on port {port} yet")


class ContainerNotScheduledError(ContainerError):
    """Exception raised when no running container instance exists for a handle yet."""

    def __init__(self, name: str) -> None:
        """
        Initialize ContainerNotScheduledError.

        Args:
            name: Container name
        """
        self.name = name
        super().__init__(
            f"there is no container instance that can be provided for {name} yet"
        )


class DockerAPIError(MCPSandboxError):
    """Exception raised when Docker API calls fail."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """
        Initialize DockerAPIError.

        Args:
            message: Error message
            original_error: Original exception from Docker
        """
        self.original_error = original_error
        super().__init__(message)
