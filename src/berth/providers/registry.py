"""Provider registry for managing resource providers."""

import logging
from typing import Dict, Optional, Type

from berth.providers.base import BaseProvider
from berth.providers.image import ImageProvider
from berth.providers.container import ContainerProvider
from berth.utils.docker import DockerClient


logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry for managing providers and the Docker client they share."""

    def __init__(self, docker: Optional[DockerClient] = None):
        """Initialize provider registry."""
        self.docker = docker
        self._providers: Dict[str, BaseProvider] = {}
        self._provider_classes: Dict[str, Type[BaseProvider]] = {
            "image": ImageProvider,
            "container": ContainerProvider,
        }

    async def initialize(self, config):
        """Initialize all providers with two-pass injection."""
        if self.docker is None:
            self.docker = DockerClient(config.docker)

        # Phase 1: Instantiate all providers
        for name, provider_class in self._provider_classes.items():
            try:
                self._providers[name] = provider_class()
            except Exception as e:
                logger.error(f"Failed to instantiate provider {name}: {e}")
                raise

        # Phase 2: Initialize and inject registry
        for name, provider in self._providers.items():
            try:
                await provider.initialize(config, self)
                logger.debug(f"Initialized provider: {name}")
            except Exception as e:
                logger.error(f"Failed to initialize provider {name}: {e}")
                raise

    async def close(self):
        """Release the Docker client."""
        if self.docker is not None:
            await self.docker.close()

    def get_provider(self, name: str) -> Optional[BaseProvider]:
        """Get a provider by name."""
        return self._providers.get(name)

    def list_providers(self) -> list[str]:
        """List available provider names."""
        return list(self._providers.keys())
