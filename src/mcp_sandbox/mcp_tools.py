"""MCP tool input/output models for the sandbox container tools."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Container API payloads


class ExecParams(BaseModel):
    """Command execution request sent to the container's /exec endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    args: str = Field(..., description="Shell command line to run in the container")
    timeout: Optional[int] = Field(None, description="Timeout in milliseconds")
    stream_stderr: bool = Field(
        default=True,
        alias="streamStderr",
        description="Also stream standard error back (useful for debugging)",
    )


class FileWrite(BaseModel):
    """File write request sent to the container's /files/contents endpoint."""

    path: str = Field(..., description="Path of the file to write, optionally prefixed with file://")
    text: str = Field(..., description="Full text content of the file you want to write.")


class FilePathParam(BaseModel):
    """A single file path argument."""

    path: str = Field(..., description="Path of the file or directory, optionally prefixed with file://")


class FileResource(BaseModel):
    """One entry of the container's working directory tree."""

    uri: str = Field(..., description="Resource URI (file:///relative/path)")
    name: str = Field(..., description="File or directory name")
    description: Optional[str] = Field(None, description="Optional description")
    mime_type: Optional[str] = Field(None, alias="mimeType", description="MIME type if known")

    model_config = ConfigDict(populate_by_name=True)


class FileList(BaseModel):
    """Directory tree returned by the container's /files/ls endpoint."""

    resources: List[FileResource] = Field(default_factory=list)


class FileContents(BaseModel):
    """Contents of a file or directory read from the container."""

    path: str = Field(..., description="Normalized path that was read")
    content: str = Field(..., description="Text content, or base64 for binary files")
    mime_type: Optional[str] = Field(None, description="MIME type reported by the container")
    encoding: Literal["text", "base64"] = Field(..., description="How content is encoded")

    @property
    def uri(self) -> str:
        """Resource URI of the file."""
        return f"file://{self.path}"

    @property
    def is_directory(self) -> bool:
        """Whether the contents are a directory listing."""
        return self.mime_type == "text/directory"

    @property
    def entries(self) -> List[str]:
        """Child resource URIs when the contents are a directory listing."""
        if not self.is_directory:
            return []
        return [line for line in self.content.split("\n") if line]


# Tool outputs


class ContainerMessageOutput(BaseModel):
    """Human-readable outcome of a lifecycle operation."""

    message: str = Field(..., description="Result message")


class ExecOutput(BaseModel):
    """Output model for container_exec."""

    output: str = Field(..., description="Combined command output ending with the exit code line")


class FileReadOutput(BaseModel):
    """Output model for container_file_read."""

    uri: str = Field(..., description="Resource URI")
    content: str = Field(..., description="Text content, or base64 for binary files")
    mime_type: Optional[str] = Field(None, description="MIME type of the resource")
    encoding: Literal["text", "base64"] = Field(..., description="How content is encoded")
    is_directory: bool = Field(default=False, description="Whether the resource is a directory")
    entries: List[str] = Field(
        default_factory=list, description="Child resource URIs when the resource is a directory"
    )


class FileDeleteOutput(BaseModel):
    """Output model for container_file_delete."""

    path: str = Field(..., description="Path that was deleted")
    deleted: bool = Field(..., description="Whether the container reported success")
    message: str = Field(..., description="Result message")


class HealthOutput(BaseModel):
    """Output model for the health tool."""

    status: str = Field(..., description="Overall server status")
    environment: str = Field(..., description="Runtime mode (dev, test, prod)")
    active_containers: int = Field(..., description="Containers tracked by the registry")
    max_containers: int = Field(..., description="Maximum active containers")
    version: str = Field(..., description="Server version")


class MetricsOutput(BaseModel):
    """Output model for the metrics tool."""

    metrics: str = Field(..., description="Prometheus metrics in text format")
