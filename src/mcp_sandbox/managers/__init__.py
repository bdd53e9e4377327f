"""Manager modules for container lifecycle logic."""

from .container_handle import ContainerHandle, DockerContainerHandle, DockerTcpPort
from .container_helpers import ErrorClass, classify_error, ensure_port_ready, proxy_fetch
from .container_manager import CONTAINER_MANAGER_NAME, ContainerManager, get_container_manager
from .maintenance_manager import MaintenanceManager, get_maintenance_manager
from .user_container import UserContainer, UserContainerNamespace, get_user_containers

__all__ = [
    "CONTAINER_MANAGER_NAME",
    "ContainerHandle",
    "ContainerManager",
    "DockerContainerHandle",
    "DockerTcpPort",
    "ErrorClass",
    "MaintenanceManager",
    "UserContainer",
    "UserContainerNamespace",
    "classify_error",
    "ensure_port_ready",
    "get_container_manager",
    "get_maintenance_manager",
    "get_user_containers",
    "proxy_fetch",
]
