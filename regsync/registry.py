from __future__ import annotations

import queue
from typing import Any, Protocol

import httpx

from . import db
from .settings import settings
from .state import CommandAction, RegistryCommand


class RegistryError(Exception):
    pass


class RegistryClient(Protocol):
    """Applies commands in the order received. ADD must be idempotent per registration id."""

    def apply(self, cmd: RegistryCommand) -> None: ...


def _registration_payload(cmd: RegistryCommand) -> dict[str, Any]:
    service = cmd.service
    payload: dict[str, Any] = {"ID": cmd.registration_id, "Address": cmd.address or ""}
    if service is not None:
        payload["Name"] = service.name
        payload["Tags"] = list(service.tags)
        payload["Meta"] = dict(service.labels)
        if service.ports:
            payload["Port"] = service.ports[0].port
    return payload


class MemoryRegistry:
    """Registrations kept in a dict keyed by id; re-adding replaces the entry."""

    def __init__(self) -> None:
        self.entries: dict[str, dict[str, Any]] = {}
        self.applied: list[RegistryCommand] = []

    def apply(self, cmd: RegistryCommand) -> None:
        self.applied.append(cmd)
        if cmd.action == CommandAction.ADD:
            self.entries[cmd.registration_id] = _registration_payload(cmd)
        else:
            self.entries.pop(cmd.registration_id, None)


class ConsulRegistry:
    """Consul agent HTTP API. Registering an existing ID overwrites it."""

    def __init__(self, base_url: str, timeout_s: float | None = None, transport: httpx.BaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else settings.http_timeout_s
        self._transport = transport

    def apply(self, cmd: RegistryCommand) -> None:
        if cmd.action == CommandAction.ADD:
            path = "/v1/agent/service/register"
            body: dict[str, Any] | None = _registration_payload(cmd)
        else:
            path = f"/v1/agent/service/deregister/{cmd.registration_id}"
            body = None
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                resp = client.put(f"{self.base_url}{path}", json=body)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise RegistryError(f"{cmd.action.value} {cmd.registration_id} failed: {type(e).__name__}: {e}") from e


def build_registry(url: str | None = None) -> RegistryClient:
    url = settings.registry_url if url is None else url
    if not url:
        return MemoryRegistry()
    return ConsulRegistry(url)


def run_registry_worker(commands: queue.Queue, registry: RegistryClient) -> None:
    """Apply commands strictly in FIFO order until a ``None`` sentinel arrives.

    A failed command is journaled and dropped; the next sync pass is the only
    recovery path.
    """
    while True:
        cmd = commands.get()
        try:
            if cmd is None:
                break
            try:
                registry.apply(cmd)
            except RegistryError as e:
                db.log_event("ERROR", str(e))
            except Exception as e:
                db.log_event("ERROR", f"Registry command failed: {type(e).__name__}: {e}")
        finally:
            commands.task_done()
