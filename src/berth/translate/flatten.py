"""Map inspect output back into computed state fields."""

from typing import Any, Dict, List, Optional

from berth.models.container import PortSpec
from berth.models.state import NetworkData


def _internal_port(key: str) -> int:
    try:
        return int(key.split("/", 1)[0])
    except ValueError:
        return 0


def flatten_ports(port_map: Optional[Dict[str, Optional[List[Dict[str, str]]]]]) -> List[PortSpec]:
    """Flatten NetworkSettings.Ports, sorted by internal port.

    Keys without bindings (exposed but not published) produce nothing.
    """
    result: List[PortSpec] = []
    if not port_map:
        return result

    for key in sorted(port_map, key=_internal_port):
        internal, _, protocol = key.partition("/")
        for binding in port_map[key] or []:
            host_port = binding.get("HostPort") or ""
            result.append(PortSpec(
                internal=int(internal),
                external=int(host_port) if host_port.isdigit() else None,
                ip=binding.get("HostIp", ""),
                protocol=protocol or "tcp",
            ))
    return result


def flatten_networks(network_settings: Optional[Dict[str, Any]]) -> List[NetworkData]:
    """One record per attached network, in no particular order."""
    if not network_settings or not network_settings.get("Networks"):
        return []

    return [
        NetworkData(
            network_name=name,
            ip_address=data.get("IPAddress") or "",
            ip_prefix_length=data.get("IPPrefixLen") or 0,
            gateway=data.get("Gateway") or "",
        )
        for name, data in network_settings["Networks"].items()
    ]
