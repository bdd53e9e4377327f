"""Settings and configuration management for MCP Sandbox."""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SANDBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime mode
    environment: Literal["dev", "test", "prod"] = Field(
        default="dev",
        description="dev/test proxy to a locally running container server, prod orchestrates containers",
    )

    # Capacity and reaping
    max_containers: int = Field(
        default=50,
        description="Maximum number of simultaneously active sandbox containers",
    )

    idle_timeout_s: int = Field(
        default=900,
        description="Seconds since last activity before a container may be reaped",
    )

    reap_interval_s: int = Field(
        default=60,
        description="Interval in seconds for the background idle container sweep",
    )

    # Container networking
    container_port: int = Field(
        default=8080,
        description="Port served by the in-container file and exec server",
    )

    dev_host: str = Field(
        default="localhost",
        description="Host that serves the container API in dev and test modes",
    )

    request_timeout_s: float = Field(
        default=600.0,
        description="Transport timeout in seconds for requests proxied into containers",
    )

    port_probe_max_attempts: int = Field(
        default=10,
        description="Maximum attempts when waiting for the container port",
    )

    port_probe_retry_delay_s: float = Field(
        default=0.3,
        description="Delay in seconds between port readiness attempts",
    )

    transient_error_markers: str = Field(
        default="listening,there is no container instance that can be provided",
        description="Comma-separated error message fragments that mark a retryable startup failure",
    )

    # Docker configuration
    docker_host: str | None = Field(
        default=None,
        description="Docker daemon host URL (defaults to Docker's standard detection)",
    )

    container_image: str = Field(
        default="mcp-sandbox-container:latest",
        description="Image providing the in-container file and exec server",
    )

    container_memory_limit: str = Field(
        default="1g",
        description="Memory limit for sandbox containers",
    )

    container_cpu_quota: int = Field(
        default=100000,
        description="CPU quota for sandbox containers (100000 = one CPU)",
    )

    container_pids_limit: int = Field(
        default=512,
        description="Maximum number of processes inside a sandbox container",
    )

    # State database configuration
    state_db: str = Field(
        default="./sandbox_state.db",
        description="Path to SQLite state database holding the container registry",
    )

    # Access control
    user_blocklist: str = Field(
        default="",
        description="Comma-separated list of user IDs not allowed to start containers",
    )

    default_user_id: str = Field(
        default="anonymous",
        description="User ID used for sessions when no access token is present",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
    )

    # Server configuration
    host: str = Field(
        default="0.0.0.0",
        description="Server host to bind to",
    )

    port: int = Field(
        default=8000,
        description="Server port to bind to",
    )

    transport_mode: Literal["stdio", "sse", "streamable-http"] = Field(
        default="streamable-http",
        description="Transport protocol for MCP server (stdio, sse, or streamable-http)",
    )

    path: str = Field(
        default="/mcp",
        description="Path for HTTP-based transports (sse or streamable-http)",
    )

    # Authentication configuration
    auth_mode: Literal["none", "bearer", "oidc"] = Field(
        default="none",
        description="Authentication mode (none, bearer, or oidc)",
    )

    bearer_token: str | None = Field(
        default=None,
        description="Bearer token for bearer authentication mode",
    )

    oauth_client_id: str | None = Field(default=None, description="OIDC client ID")

    oauth_client_secret: str | None = Field(default=None, description="OIDC client secret")

    oauth_config_url: str | None = Field(
        default=None,
        description="OIDC discovery URL (.well-known/openid-configuration)",
    )

    oauth_base_url: str | None = Field(
        default=None,
        description="Base URL of this server for OAuth callbacks",
    )

    oauth_redirect_path: str = Field(
        default="/auth/callback",
        description="OAuth callback redirect path",
    )

    oauth_required_scopes: str = Field(
        default="",
        description="Comma-separated list of required OAuth scopes",
    )

    @property
    def reap_threshold(self) -> int:
        """Active container count at which initialization sweeps idle containers."""
        return self.max_containers // 2

    @property
    def transient_error_markers_list(self) -> List[str]:
        """Parse transient error markers into a list."""
        return [m.strip() for m in self.transient_error_markers.split(",") if m.strip()]

    @property
    def user_blocklist_set(self) -> set[str]:
        """Parse the user blocklist into a set."""
        return {u.strip() for u in self.user_blocklist.split(",") if u.strip()}

    @property
    def oauth_required_scopes_list(self) -> List[str]:
        """Parse OAuth required scopes into a list."""
        if not self.oauth_required_scopes:
            return []
        return [s.strip() for s in self.oauth_required_scopes.split(",") if s.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
