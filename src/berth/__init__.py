"""
Berth - declarative Docker container reconciliation.

Keeps Docker containers in line with YAML container specs: creates them,
waits for them to settle, detects drift and replaces them when an
immutable attribute changes.
"""

__version__ = "1.0.0"

# Re-export key components for easier access
from berth.models.config import BerthConfig
from berth.models.container import ContainerSpec
from berth.models.state import ContainerState

__all__ = [
    "BerthConfig",
    "ContainerSpec",
    "ContainerState",
]
