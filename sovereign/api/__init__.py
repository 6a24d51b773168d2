"""Dashboard API client and record schemas."""

from sovereign.api.client import DashboardClient
from sovereign.api.schemas import (
    ActionResult,
    AIModel,
    AIStatus,
    AppInfo,
    CatalogEntry,
    ChatMessage,
    PhoneStatus,
    ServiceStatus,
    SystemResources,
)

__all__ = [
    "AIModel",
    "AIStatus",
    "ActionResult",
    "AppInfo",
    "CatalogEntry",
    "ChatMessage",
    "DashboardClient",
    "PhoneStatus",
    "ServiceStatus",
    "SystemResources",
]
