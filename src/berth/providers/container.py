"""Container provider reconciling Docker containers with their specs."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from berth.errors import (
    BerthError,
    ContainerExitedError,
    ConvergenceError,
    ReconcileError,
    SpecValidationError,
)
from berth.models.container import ContainerSpec
from berth.models.state import ContainerState
from berth.providers.base import BaseProvider, ProviderStatus
from berth.translate.convert import build_upload_archive, parse_timestamp
from berth.translate.flatten import flatten_networks, flatten_ports
from berth.translate.request import NetworkPlan, translate
from berth.utils.docker import DockerAPIError, DockerClient, DockerNotFoundError

if TYPE_CHECKING:
    from berth.providers.registry import ProviderRegistry
    from berth.providers.image import ImageProvider

logger = logging.getLogger(__name__)


class ContainerProvider(BaseProvider):
    """Provider for managing Docker containers.

    ``create``, ``read`` and ``delete`` operate on a ContainerState whose
    ``id`` is the recorded runtime identity; ``delete`` (including the
    implicit deletes done by ``read``) sets it back to None.
    """

    def __init__(self):
        """Initialize container provider."""
        self.docker: Optional[DockerClient] = None
        self.default_network = "bridge"
        self.poll_attempts = 30
        self.poll_interval = 0.5
        self._image_provider: Optional["ImageProvider"] = None

    async def initialize(self, config, registry: "ProviderRegistry") -> None:
        """Initialize provider with configuration and registry."""
        self.docker = registry.docker
        self.default_network = config.docker.default_network
        self.poll_attempts = config.reconcile.poll_attempts
        self.poll_interval = config.reconcile.poll_interval

        # Inject dependency explicitly
        self._image_provider = registry.get_provider("image")

    @property
    def image_provider(self) -> Optional["ImageProvider"]:
        """Get image provider."""
        return self._image_provider

    async def status(self, spec: ContainerSpec) -> ProviderStatus:
        """Check if a container with the spec's name exists."""
        try:
            containers = await self.docker.list_containers(all=True)
        except DockerAPIError as e:
            logger.error(f"Error checking container {spec.name}: {e}")
            return ProviderStatus.ERROR

        for container in containers:
            if f"/{spec.name}" in (container.get("Names") or []):
                return ProviderStatus.PRESENT
        return ProviderStatus.ABSENT

    async def present(self, spec: ContainerSpec, state: Optional[ContainerState] = None) -> ContainerState:
        """Ensure container is present: refresh a recorded one, create otherwise."""
        if state is not None and state.exists:
            state = await self.read(spec, state)
            if state.exists:
                logger.debug(f"Container {spec.name} already present")
                return state
            logger.info(f"Container {spec.name} is gone, recreating")

        return await self.create(spec)

    async def absent(self, spec: ContainerSpec, state: Optional[ContainerState] = None) -> None:
        """Ensure container is absent."""
        if state is None or not state.exists:
            logger.debug(f"Container {spec.name} already absent")
            return
        logger.info(f"Removing container {spec.name}")
        await self.delete(spec, state)

    async def validate_spec(self, spec: ContainerSpec) -> bool:
        """Validate container specification."""
        try:
            translate(spec)
        except SpecValidationError as e:
            logger.error(f"Invalid container spec {spec.name}: {e}")
            return False

        if self.image_provider and not await self.image_provider.validate_spec(spec.image):
            return False
        return True

    async def is_running(self, state: ContainerState) -> bool:
        """Check if container is running."""
        if not state.exists:
            return False
        try:
            info = await self.docker.inspect_container(state.id)
        except DockerAPIError as e:
            logger.error(f"Error checking container state: {e}")
            return False
        return bool(info.get("State", {}).get("Running"))

    async def create(self, spec: ContainerSpec) -> ContainerState:
        """Create the container and wait for it to settle.

        Raises:
            SpecValidationError: the spec is contradictory; nothing was created
            ReconcileError: a phase failed; ``error.state.id`` is set when a
                container was already created and must be deleted by the caller
        """
        state = ContainerState()

        request = translate(spec)

        if self.image_provider:
            try:
                await self.image_provider.present(spec.image)
            except DockerAPIError as e:
                raise ReconcileError(
                    "image", f"Unable to create container with image {spec.image}: {e}", state
                ) from e

        logger.info(f"Creating container {spec.name}")
        try:
            state.id = await self.docker.create_container(
                request.config,
                request.host_config,
                request.networking_config,
                request.name,
            )
        except DockerAPIError as e:
            raise ReconcileError("create", f"Unable to create container: {e}", state) from e

        await self._connect_networks(request.network_plan, state)
        await self._upload_files(spec, state)

        created_at: Optional[datetime] = None
        if spec.start:
            created_at = datetime.now(timezone.utc)
            try:
                await self.docker.start_container(state.id)
            except DockerAPIError as e:
                raise ReconcileError("start", f"Unable to start container: {e}", state) from e
            logger.debug(f"Started container {spec.name}")

        if spec.attach:
            state.container_logs = await self._attach_and_wait(spec, state)

        return await self.read(spec, state, created_at=created_at)

    async def read(
        self,
        spec: ContainerSpec,
        state: ContainerState,
        created_at: Optional[datetime] = None,
    ) -> ContainerState:
        """Refresh state from the runtime.

        ``created_at`` is passed only right after ``create``; it enables
        polling until the container is running. Without it a single inspect
        is done and a stopped container that must run is deleted, so that
        it gets recreated on the next pass.

        Raises:
            ContainerExitedError: a freshly created container exited
            ConvergenceError: a freshly created container never reached the
                running state
            ReconcileError: the runtime could not be queried
        """
        if not state.exists:
            return state

        try:
            exists = await self.docker.container_exists(state.id)
        except DockerAPIError as e:
            raise ReconcileError("read", f"Error fetching container information from Docker: {e}", state) from e

        if not exists:
            logger.info(f"Container {spec.name} ({state.id[:12]}) no longer exists")
            state.id = None
            return state

        attempts = self.poll_attempts if created_at is not None else 1
        info: Dict[str, Any] = {}
        running = False

        for attempt in range(attempts):
            try:
                info = await self.docker.inspect_container(state.id)
            except DockerAPIError as e:
                raise ReconcileError("read", f"Error inspecting container {state.id}: {e}", state) from e

            logger.debug(f"Docker container inspect: {json.dumps(info, indent=2, default=str)}")

            container_state = info.get("State") or {}
            running = bool(container_state.get("Running"))
            if running or not spec.must_run:
                break

            if created_at is None:
                logger.info(f"Container {spec.name} is not running, removing it so it gets recreated")
                await self.delete(spec, state)
                return state

            try:
                finished_at = parse_timestamp(container_state.get("FinishedAt") or "")
            except ValueError as e:
                raise ConvergenceError(
                    f"Container finish time could not be parsed: {container_state.get('FinishedAt')}", state
                ) from e

            if finished_at > created_at:
                container_id = state.id
                await self._cleanup(spec, state)
                raise ContainerExitedError(
                    f"Container {container_id} exited after creation, error was: {container_state.get('Error', '')}",
                    state,
                )

            if attempt < attempts - 1:
                await asyncio.sleep(self.poll_interval)

        if not running and spec.must_run:
            container_id = state.id
            await self._cleanup(spec, state)
            raise ConvergenceError(f"Container {container_id} failed to reach running state", state)

        self._populate(state, info)
        return state

    async def delete(self, spec: ContainerSpec, state: ContainerState) -> None:
        """Stop (after the grace period, if any) and remove the container.

        Raises:
            ReconcileError: stop, remove or the removal wait failed
        """
        if not state.exists:
            return

        if spec.rm:
            # The runtime discards auto-removed containers itself
            state.id = None
            return

        container_id = state.id

        if not spec.attach and spec.destroy_grace_seconds:
            try:
                await self.docker.stop_container(container_id, timeout=spec.destroy_grace_seconds)
            except DockerNotFoundError:
                logger.debug(f"Container {container_id} already gone before stop")
            except DockerAPIError as e:
                raise ReconcileError("delete", f"Error stopping container {container_id}: {e}", state) from e

        try:
            await self.docker.remove_container(container_id, remove_volumes=True, force=True)
        except DockerAPIError as e:
            if not _is_gone(e):
                raise ReconcileError("delete", f"Error deleting container {container_id}: {e}", state) from e
            logger.debug(f"Container {container_id} already removed: {e}")

        try:
            exit_code = await self.docker.wait_container(container_id, condition="removed")
            logger.info(f"Container exited with code [{exit_code}]: '{container_id}'")
        except DockerAPIError as e:
            if not _is_gone(e):
                raise ReconcileError(
                    "delete", f"Error waiting for container removal '{container_id}': {e}", state
                ) from e

        state.id = None

    async def _cleanup(self, spec: ContainerSpec, state: ContainerState) -> None:
        """Delete after a convergence failure; failures are logged only."""
        try:
            await self.delete(spec, state)
        except (BerthError, DockerAPIError) as e:
            logger.warning(f"Failed to clean up container {spec.name}: {e}")

    async def _connect_networks(self, plan: NetworkPlan, state: ContainerState) -> None:
        """Replace the default network with the declared ones."""
        if not plan.replaces_default:
            return

        try:
            await self.docker.network_disconnect(self.default_network, state.id, force=False)
        except DockerAPIError as e:
            if "is not connected to" not in e.message:
                raise ReconcileError("network", f"Unable to disconnect the default network: {e}", state) from e
            logger.debug(f"Container {state.id[:12]} was not connected to {self.default_network}")

        for network, endpoint_config in plan.attachments:
            try:
                await self.docker.network_connect(network, state.id, endpoint_config)
            except DockerAPIError as e:
                raise ReconcileError("network", f"Unable to connect to network '{network}': {e}", state) from e
            logger.debug(f"Connected {state.id[:12]} to network {network}")

    async def _upload_files(self, spec: ContainerSpec, state: ContainerState) -> None:
        """Copy declared files into the container root."""
        for upload in spec.uploads:
            archive = build_upload_archive(upload.file, upload.content, upload.executable)
            try:
                await self.docker.copy_to_container(state.id, "/", archive)
            except DockerAPIError as e:
                raise ReconcileError("upload", f"Unable to upload file {upload.file}: {e}", state) from e
            logger.debug(f"Uploaded {upload.file} to container {spec.name}")

    async def _attach_and_wait(self, spec: ContainerSpec, state: ContainerState) -> Optional[str]:
        """Wait for the container to exit, capturing logs if requested.

        Log capture runs alongside the wait and is cancelled as soon as the
        wait returns, so trailing lines may be missing.
        """
        lines: List[str] = []
        log_task: Optional[asyncio.Task] = None
        if spec.logs:
            log_task = asyncio.create_task(self._collect_logs(state.id, lines))

        try:
            exit_code = await self.docker.wait_container(state.id, condition="not-running")
            logger.info(f"Attached container {spec.name} exited with code {exit_code}")
        except DockerAPIError as e:
            raise ReconcileError("wait", f"Unable to wait container end of execution: {e}", state) from e
        finally:
            if log_task is not None:
                log_task.cancel()
                await asyncio.gather(log_task, return_exceptions=True)

        if not spec.logs:
            return None
        return "".join(f"{line}\n" for line in lines)

    async def _collect_logs(self, container_id: str, lines: List[str]) -> None:
        """Append followed log lines to ``lines``."""
        try:
            async for line in self.docker.stream_logs(
                container_id, stdout=True, stderr=True, follow=True, timestamps=False
            ):
                lines.append(line)
                logger.debug(f"container logs: {line}")
        except DockerAPIError as e:
            logger.warning(f"Log streaming for {container_id[:12]} stopped: {e}")

    def _populate(self, state: ContainerState, info: Dict[str, Any]) -> None:
        """Copy runtime-reported fields into the state."""
        container_state = info.get("State") or {}
        state.running = bool(container_state.get("Running"))
        state.finished_at = container_state.get("FinishedAt")
        state.error = container_state.get("Error") or None
        if not state.running:
            state.exit_code = container_state.get("ExitCode")

        settings = info.get("NetworkSettings")
        if not settings:
            return

        state.ip_address = settings.get("IPAddress") or None
        state.ip_prefix_length = settings.get("IPPrefixLen")
        state.gateway = settings.get("Gateway") or None
        state.bridge = settings.get("Bridge") or None

        state.network_data = flatten_networks(settings)
        if state.network_data:
            first = state.network_data[0]
            state.ip_address = first.ip_address
            state.ip_prefix_length = first.ip_prefix_length
            state.gateway = first.gateway

        state.ports = flatten_ports(settings.get("Ports"))


def _is_gone(error: DockerAPIError) -> bool:
    """Whether an error means the container is already removed or being removed."""
    message = error.message.lower()
    return (
        isinstance(error, DockerNotFoundError)
        or "no such container" in message
        or "is already in progress" in message
    )
