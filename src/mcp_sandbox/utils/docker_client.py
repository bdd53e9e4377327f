"""Shared Docker client for the daemon that hosts sandbox containers."""

import docker
from docker import DockerClient
from docker.errors import DockerException

from mcp_sandbox.config import get_settings
from mcp_sandbox.utils import get_logger

logger = get_logger(__name__)

_docker_client: DockerClient | None = None


def get_docker_client() -> DockerClient:
    """
    Get global Docker client instance, connecting on first use.

    Only prod mode creates sandbox containers, so dev and test runs never
    reach the daemon.

    Returns:
        DockerClient instance

    Raises:
        DockerException: If the daemon is unreachable
    """
    global _docker_client
    if _docker_client is None:
        docker_host = get_settings().docker_host
        try:
            client = docker.DockerClient(base_url=docker_host) if docker_host else docker.from_env()
            client.ping()
        except DockerException as e:
            logger.error(
                "Docker daemon unreachable",
                extra={"docker_host": docker_host or "environment", "error": str(e)},
            )
            raise

        logger.info("Connected to Docker daemon", extra={"docker_host": docker_host or "environment"})
        _docker_client = client
    return _docker_client


def close_docker_client() -> None:
    """Close global Docker client, if one was opened."""
    global _docker_client
    if _docker_client is not None:
        _docker_client.close()
        _docker_client = None
        logger.info("Docker client closed")
