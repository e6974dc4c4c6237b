from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from .bookkeeper import UpstreamListingFailure
from .models import NodeSnapshot, ServiceDef
from .settings import settings


class ControlPlaneClient:
    """Read-only view of the cluster control plane (Kubernetes-shaped JSON API)."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout_s: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.control_plane_url).rstrip("/")
        self.token = token if token is not None else settings.control_plane_token
        self.timeout_s = timeout_s if timeout_s is not None else settings.http_timeout_s
        self._transport = transport

    def _get_items(self, path: str) -> list[dict[str, Any]]:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport, headers=headers) as client:
                resp = client.get(f"{self.base_url}{path}")
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise UpstreamListingFailure(f"GET {path} failed: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise UpstreamListingFailure(f"GET {path} returned invalid JSON") from e

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise UpstreamListingFailure(f"GET {path} returned no 'items' list")
        return items

    def list_nodes(self) -> list[NodeSnapshot]:
        try:
            return [NodeSnapshot.from_k8s(obj) for obj in self._get_items("/api/v1/nodes")]
        except (ValidationError, KeyError, TypeError) as e:
            raise UpstreamListingFailure(f"Malformed node listing: {e}") from e

    def list_node_names(self) -> set[str]:
        return {n.name for n in self.list_nodes()}

    def list_services(self) -> list[ServiceDef]:
        try:
            return [ServiceDef.from_k8s(obj) for obj in self._get_items("/api/v1/services")]
        except (ValidationError, KeyError, TypeError) as e:
            raise UpstreamListingFailure(f"Malformed service listing: {e}") from e
