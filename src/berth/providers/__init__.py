"""Resource providers for berth."""

from berth.providers.base import BaseProvider, ProviderStatus
from berth.providers.registry import ProviderRegistry

__all__ = [
    "BaseProvider",
    "ProviderStatus",
    "ProviderRegistry",
]
