"""Workflow orchestration over the connection repositories."""

from .connection_manager import ConnectionManager
from .factory import ConnectionServices, create_connection_services
from .request_workflow import RequestWorkflow

__all__ = ["ConnectionManager", "ConnectionServices", "RequestWorkflow", "create_connection_services"]
