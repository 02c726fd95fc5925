"""Pydantic models for configuration and validation."""

from berth.models.config import BerthConfig, AgentConfig, DockerConfig, ReconcileConfig
from berth.models.container import (
    ContainerSpec,
    PortSpec,
    HostEntry,
    UlimitSpec,
    NetworkAttachment,
    VolumeSpec,
    MountSpec,
    DeviceSpec,
    HealthcheckSpec,
    CapabilitiesSpec,
    UploadSpec,
)
from berth.models.state import ContainerState, NetworkData

__all__ = [
    "BerthConfig",
    "AgentConfig",
    "DockerConfig",
    "ReconcileConfig",
    "ContainerSpec",
    "PortSpec",
    "HostEntry",
    "UlimitSpec",
    "NetworkAttachment",
    "VolumeSpec",
    "MountSpec",
    "DeviceSpec",
    "HealthcheckSpec",
    "CapabilitiesSpec",
    "UploadSpec",
    "ContainerState",
    "NetworkData",
]
