"""Configuration management for the agent."""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ruamel.yaml import YAML
from pydantic import ValidationError

from berth.models.config import BerthConfig
from berth.models.container import ContainerSpec


logger = logging.getLogger(__name__)


class ConfigManager:
    """Manages configuration loading and monitoring.

    Layout of the config directory::

        config.yaml           agent, docker and reconcile settings
        containers/*.yaml     ``containers:`` mapping of name -> spec
    """

    def __init__(self, config_dir: Path):
        """Initialize configuration manager."""
        self.config_dir = Path(config_dir)
        self.yaml = YAML(typ="safe")
        self.config: Optional[BerthConfig] = None
        self.containers: Dict[str, ContainerSpec] = {}
        self.errors: Dict[str, str] = {}
        self._config_hashes: Dict[str, str] = {}

    async def load(self):
        """Load all configuration files."""
        logger.info(f"Loading configuration from {self.config_dir}")

        await self._load_main_config()
        await self._load_containers()

        logger.info(f"Configuration loaded: {len(self.containers)} container(s)")

    async def _load_main_config(self):
        """Load main configuration file."""
        config_file = self.config_dir / "config.yaml"
        if not config_file.exists():
            raise FileNotFoundError(f"Main config not found: {config_file}")

        try:
            data = await self._read_yaml(config_file)
            self.config = BerthConfig(**(data or {}))
            logger.debug(f"Loaded main config: {config_file}")
        except ValidationError as e:
            logger.error(f"Invalid main config: {e}")
            raise

    async def _load_containers(self):
        """Load container specs."""
        containers_dir = self.config_dir / "containers"
        self.containers.clear()
        self.errors.clear()
        if not containers_dir.exists():
            logger.warning(f"Containers directory not found: {containers_dir}")
            return

        for yaml_file in sorted(containers_dir.glob("*.yaml")):
            try:
                data = await self._read_yaml(yaml_file) or {}
            except Exception as e:
                logger.error(f"Error loading {yaml_file}: {e}")
                self.errors[str(yaml_file)] = str(e)
                continue

            for name, spec in (data.get("containers") or {}).items():
                if name in self.containers:
                    logger.error(f"Container {name} defined more than once, ignoring {yaml_file}")
                    self.errors[name] = f"duplicate definition in {yaml_file}"
                    continue
                try:
                    self.containers[name] = ContainerSpec(name=name, **(spec or {}))
                except (ValidationError, TypeError) as e:
                    logger.error(f"Invalid container {name} in {yaml_file}: {e}")
                    self.errors[name] = str(e)
            logger.debug(f"Loaded containers from {yaml_file}")

    async def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse YAML file."""
        content = await asyncio.to_thread(file_path.read_text)
        # Store hash for change detection
        self._config_hashes[str(file_path)] = hashlib.md5(content.encode()).hexdigest()
        return self.yaml.load(content)

    async def watch_for_changes(self) -> bool:
        """Check if configuration files have changed."""
        changed = False

        for yaml_file in self.config_dir.rglob("*.yaml"):
            content = await asyncio.to_thread(yaml_file.read_text)
            current_hash = hashlib.md5(content.encode()).hexdigest()

            if self._config_hashes.get(str(yaml_file)) != current_hash:
                changed = True

        return changed

    @property
    def state_file(self) -> Path:
        """State file path; a relative state_dir is taken from the config directory."""
        return self.config_dir / self.config.agent.state_dir / "state.json"

    def get_container_spec(self, name: str) -> Optional[ContainerSpec]:
        """Get container specification by name."""
        return self.containers.get(name)
