"""Port diff suppression."""

import logging
from typing import Optional, Sequence

from berth.models.container import PortSpec


logger = logging.getLogger(__name__)


def _find_by_internal(ports: Sequence[PortSpec], internal: int) -> Optional[PortSpec]:
    for port in ports:
        if port.internal == internal:
            return port
    return None


def ports_equivalent(old: Sequence[PortSpec], new: Sequence[PortSpec]) -> bool:
    """Decide whether a change in declared ports is only cosmetic.

    Lists of equal length are equivalent when every old port finds a new
    port with the same internal number (first match wins) and the same
    external port, ip and protocol. New ports are not checked beyond the
    length comparison, and two entries sharing an internal port with
    different protocols are not told apart.
    """
    if len(old) != len(new):
        logger.debug("suppress diff ports: old and new don't have the same length")
        return False

    for old_port in old:
        new_port = _find_by_internal(new, old_port.internal)
        if new_port is None:
            logger.debug(f"suppress diff ports: port was deleted '{old_port.internal}'")
            return False
        for attr in ("external", "ip", "protocol"):
            if getattr(old_port, attr) != getattr(new_port, attr):
                logger.debug(f"suppress diff ports: '{attr}' changed for '{old_port.internal}'")
                return False

    return True
