from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class NodeCondition(BaseModel):
    type: str
    status: str = "Unknown"  # True|False|Unknown


class NodeAddress(BaseModel):
    type: str = "InternalIP"
    address: str


class NodeSnapshot(BaseModel):
    """Point-in-time view of a cluster node as reported by the control plane."""

    name: str = Field(..., min_length=1, description="Unique node name")
    conditions: list[NodeCondition] = Field(default_factory=list)
    addresses: list[NodeAddress] = Field(default_factory=list)

    @classmethod
    def from_k8s(cls, obj: dict[str, Any]) -> NodeSnapshot:
        status = obj.get("status") or {}
        return cls(
            name=(obj.get("metadata") or {}).get("name", ""),
            conditions=[NodeCondition(**c) for c in status.get("conditions") or []],
            addresses=[NodeAddress(**a) for a in status.get("addresses") or []],
        )


class ServicePort(BaseModel):
    name: str | None = None
    port: int = Field(..., ge=1, le=65535)
    protocol: str = "TCP"


class ServiceDef(BaseModel):
    """Service definition. Everything except ``name`` is passed to the registry untouched."""

    name: str = Field(..., min_length=1, description="Unique service name (dns-safe)")
    ports: list[ServicePort] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_k8s(cls, obj: dict[str, Any]) -> ServiceDef:
        meta = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        return cls(
            name=meta.get("name", ""),
            ports=[
                ServicePort(name=p.get("name"), port=p.get("nodePort") or p["port"], protocol=p.get("protocol", "TCP"))
                for p in spec.get("ports") or []
            ],
            labels=meta.get("labels") or {},
        )


class WorkAction(str, Enum):
    ADD_NODE = "add_node"
    REMOVE_NODE = "remove_node"
    UPDATE_NODE = "update_node"
    ADD_SERVICE = "add_service"
    REMOVE_SERVICE = "remove_service"
    UPDATE_SERVICE = "update_service"
    SYNC = "sync"


NODE_ACTIONS = {WorkAction.ADD_NODE, WorkAction.REMOVE_NODE, WorkAction.UPDATE_NODE}
SERVICE_ACTIONS = {WorkAction.ADD_SERVICE, WorkAction.REMOVE_SERVICE, WorkAction.UPDATE_SERVICE}


class Work(BaseModel):
    """One inbound cluster event for the bookkeeper."""

    action: WorkAction
    node: NodeSnapshot | None = None
    service: ServiceDef | None = None

    @model_validator(mode="after")
    def _check_payload(self) -> Work:
        if self.action in NODE_ACTIONS and self.node is None:
            raise ValueError(f"'{self.action.value}' requires a node snapshot")
        if self.action in SERVICE_ACTIONS and self.service is None:
            raise ValueError(f"'{self.action.value}' requires a service definition")
        return self
