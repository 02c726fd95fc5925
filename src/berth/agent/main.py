"""Main agent implementation."""

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Optional

from watchfiles import awatch

from berth.agent.config import ConfigManager
from berth.agent.engine import StateEngine
from berth.agent.store import StateStore
from berth.providers import ProviderRegistry
from berth.utils.logging import setup_logging


logger = logging.getLogger(__name__)


class BerthAgent:
    """Main agent keeping containers reconciled with the configuration."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize the agent."""
        self.config_dir = config_dir or Path("./configs")
        self.config_manager: Optional[ConfigManager] = None
        self.registry: Optional[ProviderRegistry] = None
        self.state_engine: Optional[StateEngine] = None
        self.shutdown_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    async def initialize(self):
        """Initialize agent components."""
        self.config_manager = ConfigManager(self.config_dir)
        await self.config_manager.load()

        # Setup logging
        config = self.config_manager.config
        setup_logging(config.agent.log_level)

        # Initialize provider registry
        self.registry = ProviderRegistry()
        await self.registry.initialize(config)

        store = StateStore(self.config_manager.state_file)
        await store.load()

        self.state_engine = StateEngine(
            config_manager=self.config_manager,
            provider_registry=self.registry,
            store=store,
        )

        logger.info("Agent initialized successfully")

    async def run(self):
        """Run the agent main loop."""
        await self.initialize()

        # Setup signal handlers
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.shutdown)

        try:
            reconcile_task = asyncio.create_task(self._reconciliation_loop())
            self._tasks.append(reconcile_task)

            config_task = asyncio.create_task(self._config_watch_loop())
            self._tasks.append(config_task)

            logger.info("Agent started, waiting for shutdown signal")
            await self.shutdown_event.wait()

        finally:
            await self._cleanup()

    async def _reconciliation_loop(self):
        """Run periodic reconciliation."""
        while not self.shutdown_event.is_set():
            try:
                logger.debug("Starting reconciliation cycle")
                await self.state_engine.reconcile()
                logger.debug("Reconciliation cycle completed")
            except Exception as e:
                logger.error(f"Reconciliation error: {e}", exc_info=True)

            # Re-read each cycle so reloads can change the interval
            interval = self.config_manager.config.agent.reconciliation_interval
            try:
                await asyncio.wait_for(
                    self.shutdown_event.wait(),
                    timeout=interval
                )
            except asyncio.TimeoutError:
                continue

    async def _config_watch_loop(self):
        """Watch for configuration changes."""
        logger.info(f"Starting config watcher on {self.config_manager.config_dir}")
        try:
            async for changes in awatch(self.config_manager.config_dir, stop_event=self.shutdown_event):
                if not await self.config_manager.watch_for_changes():
                    logger.debug(f"Ignoring {len(changes)} change(s) with identical content")
                    continue
                logger.info("Configuration changed, reloading")
                try:
                    await self.config_manager.load()
                    # Trigger immediate reconciliation
                    task = asyncio.create_task(self.state_engine.reconcile())
                    self._tasks.append(task)
                except Exception as e:
                    logger.error(f"Failed to reload configuration: {e}")
        except Exception as e:
            if not self.shutdown_event.is_set():
                logger.error(f"Config watch error: {e}", exc_info=True)

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self.shutdown_event.set()

    async def _cleanup(self):
        """Clean up resources."""
        logger.info("Cleaning up agent resources")

        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self.registry:
            await self.registry.close()

        logger.info("Agent cleanup completed")


async def run_agent(config_dir: Optional[Path] = None):
    """Run the agent."""
    # Allow config dir override from environment
    if config_dir is None and os.environ.get("BERTH_CONFIG_DIR"):
        config_dir = Path(os.environ["BERTH_CONFIG_DIR"])

    agent = BerthAgent(config_dir=config_dir)
    await agent.run()
