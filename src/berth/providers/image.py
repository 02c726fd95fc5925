"""Image provider for resolving container images."""

import logging
from typing import Optional, TYPE_CHECKING

from berth.providers.base import BaseProvider, ProviderStatus
from berth.utils.docker import DockerAPIError, DockerClient

if TYPE_CHECKING:
    from berth.providers.registry import ProviderRegistry


logger = logging.getLogger(__name__)


class ImageProvider(BaseProvider):
    """Provider making sure images referenced by containers exist locally."""

    def __init__(self):
        """Initialize image provider."""
        self.docker: Optional[DockerClient] = None

    async def initialize(self, config, registry: "ProviderRegistry") -> None:
        """Initialize provider with configuration and registry."""
        self.docker = registry.docker

    async def status(self, image: str) -> ProviderStatus:
        """Check if image exists locally."""
        try:
            if await self.docker.inspect_image(image) is not None:
                return ProviderStatus.PRESENT
            return ProviderStatus.ABSENT
        except DockerAPIError as e:
            logger.error(f"Error checking image {image}: {e}")
            return ProviderStatus.ERROR

    async def present(self, image: str) -> str:
        """Ensure image is present and return its ID.

        Raises:
            DockerAPIError: the pull or the follow-up inspect failed
        """
        info = await self.docker.inspect_image(image)
        if info is not None:
            logger.debug(f"Image {image} already present")
            return info["Id"]

        logger.info(f"Pulling image {image}")
        await self.docker.pull_image(image)

        info = await self.docker.inspect_image(image)
        if info is None:
            raise DockerAPIError(f"Image {image} not found after pull")
        logger.info(f"Image {image} pulled successfully")
        return info["Id"]

    async def absent(self, image: str) -> None:
        """Ensure image is absent.

        Completes the provider interface; the reconciler never removes images.
        """
        if await self.status(image) == ProviderStatus.ABSENT:
            logger.debug(f"Image {image} already absent")
            return

        logger.info(f"Removing image {image}")
        await self.docker.remove_image(image)

    async def validate_spec(self, image: str) -> bool:
        """Validate an image reference."""
        if not image or any(c.isspace() for c in image):
            logger.error(f"Invalid image reference: {image!r}")
            return False
        return True
