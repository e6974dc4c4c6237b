from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from .models import ServiceDef


def build_registration_id(node_name: str, service_name: str) -> str:
    """Registry id for a (node, service) pair.

    Names containing '-' can collide (``a-b`` + ``c`` vs ``a`` + ``b-c``);
    callers keep names unambiguous.
    """
    return f"{node_name}-{service_name}"


class CommandAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"


@dataclass(frozen=True)
class RegistryCommand:
    action: CommandAction
    registration_id: str
    address: str | None = None  # ADD only
    service: ServiceDef | None = None  # ADD only


@dataclass
class Node:
    name: str
    ready: bool = False
    address: str = ""
    registrations: dict[str, str] = field(default_factory=dict)  # service name -> registration id


class RegistryState:
    """Known nodes and services. Owned by a single consumer, so no locking."""

    def __init__(self) -> None:
        self.nodes: dict[str, Node] = {}
        self.services: dict[str, ServiceDef] = {}

    def get_node(self, name: str) -> Node | None:
        return self.nodes.get(name)

    def put_node(self, node: Node) -> None:
        self.nodes[node.name] = node

    def pop_node(self, name: str) -> Node | None:
        return self.nodes.pop(name, None)

    def iter_nodes(self) -> Iterator[Node]:
        # Copy: callers may remove nodes while iterating.
        return iter(list(self.nodes.values()))

    def get_service(self, name: str) -> ServiceDef | None:
        return self.services.get(name)

    def put_service(self, service: ServiceDef) -> None:
        self.services[service.name] = service

    def pop_service(self, name: str) -> ServiceDef | None:
        return self.services.pop(name, None)

    def iter_services(self) -> Iterator[ServiceDef]:
        return iter(list(self.services.values()))

    def node_names(self) -> set[str]:
        return set(self.nodes)
