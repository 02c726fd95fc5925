"""Tests for ProviderRegistry."""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from berth.models.config import BerthConfig
from berth.providers.registry import ProviderRegistry
from berth.providers.base import BaseProvider, ProviderStatus
from berth.providers.container import ContainerProvider
from berth.providers.image import ImageProvider


class MockProvider(BaseProvider):
    """Mock provider for testing registry."""

    def __init__(self):
        self.initialized = False
        self.registry_ref = None
        self.config_ref = None

    async def initialize(self, config, registry):
        self.initialized = True
        self.config_ref = config
        self.registry_ref = registry

    async def status(self, spec):
        return ProviderStatus.UNKNOWN

    async def present(self, spec):
        pass

    async def absent(self, spec):
        pass

    async def validate_spec(self, spec):
        return True


class TestProviderRegistry:
    """Test ProviderRegistry initialization and injection."""

    @pytest.mark.asyncio
    async def test_initialization_injection(self):
        """Test that registry injects itself into providers."""
        registry = ProviderRegistry(docker=AsyncMock())
        registry._provider_classes = {
            "mock": MockProvider
        }

        mock_config = Mock()
        await registry.initialize(mock_config)

        provider = registry.get_provider("mock")
        assert provider.initialized
        assert provider.registry_ref is registry
        assert provider.config_ref is mock_config

    @pytest.mark.asyncio
    async def test_container_provider_wiring(self):
        """Test the container provider receives the shared client and image provider."""
        docker = AsyncMock()
        registry = ProviderRegistry(docker=docker)
        config = BerthConfig(**{
            "docker": {"default_network": "custom"},
            "reconcile": {"poll_attempts": 7, "poll_interval": 0.1},
        })

        await registry.initialize(config)

        container = registry.get_provider("container")
        image = registry.get_provider("image")
        assert isinstance(container, ContainerProvider)
        assert isinstance(image, ImageProvider)
        assert container.docker is docker
        assert image.docker is docker
        assert container.image_provider is image
        assert container.default_network == "custom"
        assert container.poll_attempts == 7
        assert container.poll_interval == 0.1
        assert registry.list_providers() == ["image", "container"]

    @pytest.mark.asyncio
    async def test_creates_docker_client(self):
        """Test a client is built from the docker settings when none is given."""
        config = BerthConfig(**{"docker": {"host": "tcp://127.0.0.1:2375"}})

        with patch("berth.providers.registry.DockerClient") as mock_client:
            registry = ProviderRegistry()
            await registry.initialize(config)

        mock_client.assert_called_once_with(config.docker)
        assert registry.docker is mock_client.return_value

    @pytest.mark.asyncio
    async def test_close(self):
        """Test close releases the client."""
        docker = AsyncMock()
        registry = ProviderRegistry(docker=docker)

        await registry.close()

        docker.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_initialization_failure_propagates(self):
        """Test provider initialization errors are raised."""
        registry = ProviderRegistry(docker=AsyncMock())
        failing = Mock(spec=MockProvider)
        failing.return_value.initialize = AsyncMock(side_effect=RuntimeError("boom"))
        registry._provider_classes = {"failing": failing}

        with pytest.raises(RuntimeError):
            await registry.initialize(Mock())

    def test_unknown_provider(self):
        """Test lookup of an unregistered provider."""
        assert ProviderRegistry().get_provider("nope") is None
