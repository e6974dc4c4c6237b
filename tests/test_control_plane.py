import httpx
import pytest

from regsync.bookkeeper import UpstreamListingFailure
from regsync.control_plane import ControlPlaneClient
from regsync.models import NodeSnapshot
from regsync.readiness import node_address, node_ready


NODES = {
    "items": [
        {
            "metadata": {"name": "node-a"},
            "status": {
                "conditions": [
                    {"type": "MemoryPressure", "status": "False"},
                    {"type": "Ready", "status": "True"},
                ],
                "addresses": [
                    {"type": "InternalIP", "address": "10.0.0.11"},
                    {"type": "Hostname", "address": "node-a"},
                ],
            },
        },
        {
            "metadata": {"name": "node-b"},
            "status": {"conditions": [{"type": "Ready", "status": "Unknown"}], "addresses": []},
        },
    ]
}

SERVICES = {
    "items": [
        {
            "metadata": {"name": "web", "labels": {"team": "edge"}},
            "spec": {"ports": [{"name": "http", "port": 80, "nodePort": 30080, "protocol": "TCP"}]},
        }
    ]
}


def _client(handler, **kwargs):
    return ControlPlaneClient(base_url="http://cp.test", transport=httpx.MockTransport(handler), **kwargs)


def _ok_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/api/v1/nodes":
        return httpx.Response(200, json=NODES)
    if request.url.path == "/api/v1/services":
        return httpx.Response(200, json=SERVICES)
    return httpx.Response(404)


def test_list_nodes_parses_snapshots():
    nodes = _client(_ok_handler).list_nodes()

    assert [n.name for n in nodes] == ["node-a", "node-b"]
    assert node_ready(nodes[0]) is True
    assert node_address(nodes[0]) == "10.0.0.11"
    assert node_ready(nodes[1]) is False
    assert node_address(nodes[1]) is None


def test_list_node_names():
    assert _client(_ok_handler).list_node_names() == {"node-a", "node-b"}


def test_list_services_prefers_node_port():
    (svc,) = _client(_ok_handler).list_services()
    assert svc.name == "web"
    assert svc.ports[0].port == 30080
    assert svc.labels == {"team": "edge"}


def test_bearer_token_is_sent():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"items": []})

    assert _client(handler, token="s3cret").list_node_names() == set()
    assert seen["auth"] == "Bearer s3cret"


@pytest.mark.parametrize(
    "handler",
    [
        lambda req: httpx.Response(500, json={"message": "boom"}),
        lambda req: httpx.Response(200, content=b"not json"),
        lambda req: httpx.Response(200, json={"kind": "NodeList"}),
        lambda req: httpx.Response(200, json={"items": [{"metadata": {}}]}),
    ],
)
def test_listing_errors_become_upstream_failures(handler):
    with pytest.raises(UpstreamListingFailure):
        _client(handler).list_node_names()


def test_connection_error_becomes_upstream_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamListingFailure):
        _client(handler).list_nodes()


def test_node_without_ready_condition_is_not_ready():
    assert node_ready(NodeSnapshot(name="n")) is False
