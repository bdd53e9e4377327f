"""Authentication provider factory for MCP Sandbox."""

from typing import Any

from mcp_sandbox.config import get_settings
from mcp_sandbox.utils import get_logger

logger = get_logger(__name__)


def create_auth_provider() -> Any | None:
    """
    Create authentication provider based on configuration.

    Returns:
        Authentication provider instance or None for no authentication
    """
    settings = get_settings()

    if settings.auth_mode == "none":
        logger.info("No authentication configured")
        return None

    if settings.auth_mode == "bearer":
        if not settings.bearer_token:
            raise ValueError("Bearer token authentication requires SANDBOX_BEARER_TOKEN to be set")

        from fastmcp.server.auth import StaticTokenVerifier

        logger.info("Configuring bearer token authentication")

        # The token's client_id doubles as the sandbox user
        tokens = {
            settings.bearer_token: {"client_id": settings.default_user_id, "scopes": []}
        }
        return StaticTokenVerifier(tokens=tokens)

    if settings.auth_mode == "oidc":
        required = {
            "SANDBOX_OAUTH_CLIENT_ID": settings.oauth_client_id,
            "SANDBOX_OAUTH_CLIENT_SECRET": settings.oauth_client_secret,
            "SANDBOX_OAUTH_CONFIG_URL": settings.oauth_config_url,
            "SANDBOX_OAUTH_BASE_URL": settings.oauth_base_url,
        }
        for env_name, value in required.items():
            if not value:
                raise ValueError(f"OIDC authentication requires {env_name} to be set")

        from fastmcp.server.auth.oidc_proxy import OIDCProxy

        logger.info(
            "Configuring OIDC proxy authentication",
            extra={"config_url": settings.oauth_config_url},
        )

        oidc_kwargs = {
            "config_url": settings.oauth_config_url,
            "client_id": settings.oauth_client_id,
            "client_secret": settings.oauth_client_secret,
            "base_url": settings.oauth_base_url,
            "redirect_path": settings.oauth_redirect_path,
        }
        if settings.oauth_required_scopes_list:
            oidc_kwargs["required_scopes"] = settings.oauth_required_scopes_list

        return OIDCProxy(**oidc_kwargs)

    raise ValueError(f"Invalid auth_mode: {settings.auth_mode}")
