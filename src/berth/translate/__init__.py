"""Pure mappings between container specs and Docker Engine payloads."""

from berth.translate.request import CreateRequest, NetworkPlan, translate
from berth.translate.ports import ports_equivalent
from berth.translate.flatten import flatten_ports, flatten_networks
from berth.translate.diff import requires_replacement, replacement_reasons

__all__ = [
    "CreateRequest",
    "NetworkPlan",
    "translate",
    "ports_equivalent",
    "flatten_ports",
    "flatten_networks",
    "requires_replacement",
    "replacement_reasons",
]
