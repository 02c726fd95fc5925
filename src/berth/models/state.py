"""Runtime-owned container state models."""

from typing import List, Optional
from pydantic import BaseModel, Field

from berth.models.container import PortSpec


class NetworkData(BaseModel):
    """Addressing of one network the container is attached to."""
    network_name: str
    ip_address: str = ""
    ip_prefix_length: int = 0
    gateway: str = ""


class ContainerState(BaseModel):
    """State reported by the runtime for a container.

    ``id`` is the recorded runtime identity; ``None`` means the container
    does not exist (never created, removed, or found missing).
    """
    id: Optional[str] = None
    running: bool = False
    exit_code: Optional[int] = None
    finished_at: Optional[str] = None
    error: Optional[str] = None
    container_logs: Optional[str] = None

    ports: List[PortSpec] = Field(default_factory=list)
    network_data: List[NetworkData] = Field(default_factory=list)

    # First network's addressing, kept for simple consumers
    ip_address: Optional[str] = None
    ip_prefix_length: Optional[int] = None
    gateway: Optional[str] = None
    bridge: Optional[str] = None

    @property
    def exists(self) -> bool:
        """Whether a runtime identity is recorded."""
        return self.id is not None
