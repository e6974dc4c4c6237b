import queue

from regsync.bookkeeper import Bookkeeper, UpstreamListingFailure
from regsync.models import NodeAddress, NodeCondition, NodeSnapshot, ServiceDef, ServicePort, WorkAction
from regsync.watcher import Watcher


def _node(name, ready=True, address="10.0.0.1"):
    return NodeSnapshot(
        name=name,
        conditions=[NodeCondition(type="Ready", status="True" if ready else "False")],
        addresses=[NodeAddress(address=address)] if address else [],
    )


class _FakeControlPlane:
    def __init__(self):
        self.nodes = []
        self.services = []
        self.fail = False

    def list_nodes(self):
        if self.fail:
            raise UpstreamListingFailure("down")
        return list(self.nodes)

    def list_services(self):
        return list(self.services)


def _actions(q):
    out = []
    while not q.empty():
        w = q.get_nowait()
        out.append((w.action, (w.node or w.service).name if (w.node or w.service) else None))
    return out


def test_poll_emits_diffs():
    cp = _FakeControlPlane()
    q = queue.Queue()
    w = Watcher(cp, q, poll_interval_s=1, sync_interval_s=3600)

    cp.nodes = [_node("a"), _node("b", ready=False)]
    cp.services = [ServiceDef(name="web", ports=[ServicePort(port=80)])]
    w.poll()
    assert _actions(q) == [
        (WorkAction.ADD_SERVICE, "web"),
        (WorkAction.ADD_NODE, "a"),
        (WorkAction.ADD_NODE, "b"),
    ]

    # Unchanged listing -> nothing queued
    w.poll()
    assert _actions(q) == []

    cp.nodes = [_node("b", ready=True)]
    cp.services = [ServiceDef(name="web", ports=[ServicePort(port=8080)])]
    w.poll()
    assert _actions(q) == [
        (WorkAction.UPDATE_SERVICE, "web"),
        (WorkAction.UPDATE_NODE, "b"),
        (WorkAction.REMOVE_NODE, "a"),
    ]

    cp.services = []
    w.poll()
    assert _actions(q) == [(WorkAction.REMOVE_SERVICE, "web")]


def test_failed_poll_enqueues_nothing_and_keeps_previous_view():
    cp = _FakeControlPlane()
    q = queue.Queue()
    w = Watcher(cp, q)
    cp.nodes = [_node("a")]
    w.poll()
    _actions(q)

    cp.fail = True
    try:
        w.poll()
    except UpstreamListingFailure:
        pass
    assert _actions(q) == []

    cp.fail = False
    w.poll()
    assert _actions(q) == []


def test_maybe_sync_respects_interval():
    q = queue.Queue()
    w = Watcher(_FakeControlPlane(), q, sync_interval_s=0)
    w.maybe_sync()
    assert _actions(q) == [(WorkAction.SYNC, None)]

    w = Watcher(_FakeControlPlane(), q, sync_interval_s=3600)
    w.maybe_sync()
    assert _actions(q) == []


def test_node_joining_without_address_is_added_once_addressed():
    cp = _FakeControlPlane()
    q = queue.Queue()
    w = Watcher(cp, q, sync_interval_s=3600)
    bk = Bookkeeper(queue.Queue())

    cp.nodes = [_node("n1", address=None)]
    w.poll()
    assert _actions(q) == []

    cp.nodes = [_node("n1", address="10.0.0.1")]
    w.poll()
    w.poll()
    while not q.empty():
        bk.handle(q.get_nowait())

    assert bk.state.node_names() == {"n1"}
    assert bk.state.get_node("n1").address == "10.0.0.1"


def test_addressed_node_losing_address_is_updated_not_forgotten():
    cp = _FakeControlPlane()
    q = queue.Queue()
    w = Watcher(cp, q, sync_interval_s=3600)

    cp.nodes = [_node("n1")]
    w.poll()
    _actions(q)

    cp.nodes = [_node("n1", address=None)]
    w.poll()
    assert _actions(q) == [(WorkAction.UPDATE_NODE, "n1")]

    cp.nodes = []
    w.poll()
    assert _actions(q) == [(WorkAction.REMOVE_NODE, "n1")]
