"""State reconciliation engine."""

import asyncio
import logging
from typing import Dict, Any, List, Optional
from datetime import datetime

from berth.agent.config import ConfigManager
from berth.agent.store import StateStore
from berth.errors import BerthError, ReconcileError, SpecValidationError
from berth.models.container import ContainerSpec
from berth.models.state import ContainerState
from berth.providers import ProviderRegistry
from berth.translate.diff import replacement_reasons


logger = logging.getLogger(__name__)


class StateEngine:
    """Drives configured containers towards their specs and records the outcome."""

    def __init__(
        self,
        config_manager: ConfigManager,
        provider_registry: ProviderRegistry,
        store: StateStore,
    ):
        """Initialize state engine."""
        self.config_manager = config_manager
        self.provider_registry = provider_registry
        self.store = store
        self.last_reconciliation: Optional[datetime] = None
        self._reconciliation_lock = asyncio.Lock()

    @property
    def container_provider(self):
        provider = self.provider_registry.get_provider("container")
        if not provider:
            raise RuntimeError("Container provider not available")
        return provider

    async def reconcile(self) -> Dict[str, Optional[str]]:
        """Perform full state reconciliation.

        Returns:
            Mapping of container name to an error message, or None on success
        """
        async with self._reconciliation_lock:
            start_time = datetime.now()
            logger.info("Starting state reconciliation")
            results: Dict[str, Optional[str]] = {}

            for name, spec in self.config_manager.containers.items():
                try:
                    await self._reconcile_container(spec)
                    results[name] = None
                except (BerthError, RuntimeError) as e:
                    logger.error(f"Failed to reconcile container {name}: {e}")
                    results[name] = str(e)

            for name in self._orphans():
                try:
                    await self._destroy(name)
                    results[name] = None
                except (BerthError, RuntimeError) as e:
                    logger.error(f"Failed to remove orphaned container {name}: {e}")
                    results[name] = str(e)

            await self.store.save()

            self.last_reconciliation = datetime.now()
            duration = (self.last_reconciliation - start_time).total_seconds()
            logger.info(f"State reconciliation completed in {duration:.2f}s")
            return results

    def _orphans(self) -> List[str]:
        """Recorded containers that are no longer configured."""
        return [name for name in self.store.records if name not in self.config_manager.containers]

    async def _reconcile_container(self, spec: ContainerSpec) -> Optional[ContainerState]:
        """Reconcile a single container against its recorded state."""
        provider = self.container_provider
        record = self.store.get(spec.name)

        if spec.ensure == "absent":
            if record:
                logger.info(f"Container {spec.name} should be absent, removing")
                await self._destroy(spec.name)
            return None

        if not await provider.validate_spec(spec):
            raise SpecValidationError(f"Invalid container configuration for {spec.name}")

        if record and record.state.exists:
            reasons = replacement_reasons(record.spec, spec)
            if reasons:
                logger.info(f"Container {spec.name} must be replaced ({', '.join(reasons)})")
                await self._destroy(spec.name)
            else:
                state = await self._read(spec, record.state)
                if state.exists:
                    return state
                logger.info(f"Container {spec.name} is absent, creating")

        return await self._create(spec)

    async def _read(self, spec: ContainerSpec, state: ContainerState) -> ContainerState:
        try:
            state = await self.container_provider.read(spec, state)
        except ReconcileError as e:
            self._record(spec, e.state or state)
            raise
        self._record(spec, state)
        return state

    async def _create(self, spec: ContainerSpec) -> ContainerState:
        try:
            state = await self.container_provider.create(spec)
        except ReconcileError as e:
            # Keep the id of a half-created container so it is cleaned up later
            if e.state is not None:
                self._record(spec, e.state)
            raise
        self._record(spec, state)
        return state

    async def _destroy(self, name: str) -> None:
        record = self.store.get(name)
        if not record:
            return
        try:
            await self.container_provider.absent(record.spec, record.state)
        finally:
            self._record(record.spec, record.state)

    def _record(self, spec: ContainerSpec, state: ContainerState) -> None:
        if state.exists:
            self.store.put(spec.name, spec, state)
        else:
            self.store.forget(spec.name)

    async def plan(self) -> List[Dict[str, Any]]:
        """Work out what the next reconciliation would do, without runtime calls."""
        actions: List[Dict[str, Any]] = []

        for name, spec in self.config_manager.containers.items():
            record = self.store.get(name)
            recorded = record is not None and record.state.exists
            if spec.ensure == "absent":
                if recorded:
                    actions.append({"name": name, "action": "delete", "reasons": ["ensure: absent"]})
                continue
            if not recorded:
                actions.append({"name": name, "action": "create", "reasons": []})
                continue
            reasons = replacement_reasons(record.spec, spec)
            if reasons:
                actions.append({"name": name, "action": "replace", "reasons": reasons})
            else:
                actions.append({"name": name, "action": "refresh", "reasons": []})

        for name in self._orphans():
            actions.append({"name": name, "action": "delete", "reasons": ["no longer configured"]})

        return actions

    async def apply_container(self, name: str) -> Optional[ContainerState]:
        """Reconcile a specific container."""
        spec = self.config_manager.get_container_spec(name)
        if not spec:
            raise ValueError(f"Container {name} not found in configuration")

        async with self._reconciliation_lock:
            try:
                return await self._reconcile_container(spec)
            finally:
                await self.store.save()

    async def destroy_container(self, name: str) -> bool:
        """Remove a specific container.

        Returns:
            False when nothing was recorded for the container
        """
        async with self._reconciliation_lock:
            if not self.store.get(name):
                logger.info(f"Container {name} is not managed, nothing to destroy")
                return False
            try:
                await self._destroy(name)
            finally:
                await self.store.save()
            return True

    async def get_container_status(self, name: str) -> Optional[Dict[str, Any]]:
        """Get detailed status for a specific container."""
        spec = self.config_manager.get_container_spec(name)
        record = self.store.get(name)
        if not spec and not record:
            return None

        state = record.state if record else ContainerState()
        running = False
        if state.exists:
            running = await self.container_provider.is_running(state)

        image = spec.image if spec else record.spec.image
        return {
            "name": name,
            "id": state.id,
            "exists": state.exists,
            "running": running,
            "ensure": spec.ensure if spec else "orphaned",
            "image": image,
            "exit_code": state.exit_code,
            "ip_address": state.ip_address,
            "ports": [port.model_dump() for port in state.ports],
        }

    async def get_all_container_statuses(self) -> Dict[str, Dict[str, Any]]:
        """Get status for all configured and recorded containers."""
        statuses = {}
        names = list(self.config_manager.containers) + self._orphans()
        for name in names:
            status = await self.get_container_status(name)
            if status:
                statuses[name] = status
        return statuses
