"""Dashboard API schemas.

Records returned by the non-streaming dashboard endpoints. The streaming
core treats them as opaque inputs; these models only give them a shape.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ServiceStatus(BaseModel):
    """A container service managed by the stack."""

    name: str
    running: bool = False
    status: str = ""
    ports: str = ""
    image: str = ""


class SystemResources(BaseModel):
    """Hardware snapshot of the server."""

    cpu_model: str = ""
    cpu_cores: int = 0
    ram_total_mb: int = 0
    disk_total_gb: float = 0
    disk_free_gb: float = 0
    gpu_type: str = ""
    gpu_name: str = ""
    gpu_memory_mb: int = 0

    @property
    def disk_used_percent(self) -> int:
        """Disk usage rounded to a whole percent (0 when the total is unknown)."""
        if self.disk_total_gb <= 0:
            return 0
        used = self.disk_total_gb - self.disk_free_gb
        return round(used / self.disk_total_gb * 100)


class AppInfo(BaseModel):
    """A marketplace app."""

    name: str
    display_name: str = ""
    description: str = ""
    category: str = ""
    version: str = ""
    installed: bool = False


class AIModel(BaseModel):
    """An installed GGUF model."""

    name: str
    size: int = Field(0, description="Size in bytes")
    modified_at: datetime | None = None
    digest: str = ""
    active: bool = False
    filename: str = ""

    @property
    def size_gb(self) -> float:
        return self.size / (1024**3)


class AIStatus(BaseModel):
    """Inference engine status."""

    running: bool = False
    host: str = ""
    mode: str = ""
    model: str = ""
    gpu_tier: str = ""
    recommended: str = ""
    engine: str = ""
    models_dir: str = ""


class CatalogEntry(BaseModel):
    """A downloadable model from the catalog."""

    name: str
    display_name: str = ""
    filename: str = ""
    size_gb: float = 0
    min_ram_mb: int = 0
    tier: str = ""
    architecture: str = ""
    description: str = ""
    url: str = ""
    installed: bool = False


class PhoneStatus(BaseModel):
    """Model loaded on the companion inference device."""

    model: str = ""
    display_name: str = ""
    params: int = 0
    vocab: int = 0
    context: int = 0
    size_bytes: int = 0
    engine: str = ""
    running: bool = False

    @property
    def display_label(self) -> str:
        if not self.running:
            return "offline"
        return self.display_name or self.model or "unknown"


class ChatMessage(BaseModel):
    """Wire format of one chat message."""

    role: Literal["user", "assistant", "system"]
    content: str

    model_config = ConfigDict(frozen=True)


class ActionResult(BaseModel):
    """Successful result of an install/remove/delete/switch call."""

    ok: bool = True
    message: str = ""
    model: str | None = None
