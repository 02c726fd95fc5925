"""Detect changes that force a container to be replaced."""

import logging
from typing import List

from berth.models.container import ContainerSpec
from berth.translate.ports import ports_equivalent


logger = logging.getLogger(__name__)


def replacement_reasons(applied: ContainerSpec, desired: ContainerSpec) -> List[str]:
    """Names of force-new fields that differ between two specs.

    Ports are compared with ports_equivalent so that a reorder does not
    count as a change.
    """
    reasons = []
    for name in ContainerSpec.model_fields:
        if name in ContainerSpec.MUTABLE_FIELDS:
            continue
        old = getattr(applied, name)
        new = getattr(desired, name)
        if name == "ports":
            if not ports_equivalent(old, new):
                reasons.append(name)
        elif old != new:
            reasons.append(name)

    if reasons:
        logger.debug(f"Container {desired.name} needs replacement, changed: {', '.join(reasons)}")
    return reasons


def requires_replacement(applied: ContainerSpec, desired: ContainerSpec) -> bool:
    """Whether applying ``desired`` over ``applied`` needs destroy and recreate."""
    return bool(replacement_reasons(applied, desired))
