"""Base provider interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from berth.providers.registry import ProviderRegistry


class ProviderStatus(Enum):
    """Provider resource status."""
    PRESENT = "present"
    ABSENT = "absent"
    UNKNOWN = "unknown"
    ERROR = "error"


class BaseProvider(ABC):
    """Base provider interface that all providers must implement."""

    @abstractmethod
    async def initialize(self, config: Any, registry: "ProviderRegistry"):
        """Initialize the provider with configuration and registry."""
        pass

    @abstractmethod
    async def status(self, spec: Any) -> ProviderStatus:
        """Check the current status of a resource."""
        pass

    @abstractmethod
    async def present(self, spec: Any, *args, **kwargs) -> Any:
        """Ensure the resource is present."""
        pass

    @abstractmethod
    async def absent(self, spec: Any, *args, **kwargs) -> None:
        """Ensure the resource is absent."""
        pass

    @abstractmethod
    async def validate_spec(self, spec: Any) -> bool:
        """Validate the resource specification."""
        pass
