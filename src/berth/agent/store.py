"""Recorded container identities and applied specs."""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field

from berth.models.container import ContainerSpec
from berth.models.state import ContainerState


logger = logging.getLogger(__name__)


class ContainerRecord(BaseModel):
    """What was last applied for a container and what the runtime reported."""
    spec: ContainerSpec
    state: ContainerState = Field(default_factory=ContainerState)


class StateStore:
    """JSON file holding one record per managed container."""

    def __init__(self, path: Path):
        """Initialize the store; nothing is read until ``load``."""
        self.path = Path(path)
        self.records: Dict[str, ContainerRecord] = {}

    async def load(self) -> None:
        """Load records from disk; a missing file means no records."""
        if not self.path.exists():
            self.records = {}
            return

        raw = await asyncio.to_thread(self.path.read_text)
        data = json.loads(raw) if raw.strip() else {}
        self.records = {
            name: ContainerRecord.model_validate(record)
            for name, record in data.get("containers", {}).items()
        }
        logger.debug(f"Loaded {len(self.records)} record(s) from {self.path}")

    async def save(self) -> None:
        """Write records atomically."""
        data = {
            "containers": {
                name: record.model_dump(mode="json")
                for name, record in sorted(self.records.items())
            }
        }
        await asyncio.to_thread(self._write, json.dumps(data, indent=2))

    def _write(self, content: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def get(self, name: str) -> Optional[ContainerRecord]:
        """Get the record for a container."""
        return self.records.get(name)

    def put(self, name: str, spec: ContainerSpec, state: ContainerState) -> None:
        """Record an applied spec and its runtime state."""
        self.records[name] = ContainerRecord(spec=spec, state=state)

    def forget(self, name: str) -> None:
        """Drop the record for a container."""
        self.records.pop(name, None)
