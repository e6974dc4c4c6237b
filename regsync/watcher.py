from __future__ import annotations

import queue
import time
from threading import Thread
from typing import Callable

from . import db
from .bookkeeper import UpstreamListingFailure
from .control_plane import ControlPlaneClient
from .models import NodeSnapshot, ServiceDef, Work, WorkAction
from .readiness import node_address, node_ready
from .settings import settings


class Watcher:
    """Polls the control plane and turns listing diffs into work items.

    Also schedules a SYNC every ``sync_interval_s`` seconds.
    """

    def __init__(
        self,
        client: ControlPlaneClient,
        work_queue: queue.Queue,
        is_ready: Callable[[NodeSnapshot], bool] = node_ready,
        poll_interval_s: int | None = None,
        sync_interval_s: int | None = None,
    ):
        self.client = client
        self.work_queue = work_queue
        self.is_ready = is_ready
        self.poll_interval_s = poll_interval_s if poll_interval_s is not None else settings.poll_interval_s
        self.sync_interval_s = sync_interval_s if sync_interval_s is not None else settings.sync_interval_s
        self._nodes: dict[str, NodeSnapshot] = {}
        self._services: dict[str, ServiceDef] = {}
        self._last_sync = time.monotonic()
        self._stop = False
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop = False
        self._thr = Thread(target=self._loop, daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop = True

    def _loop(self) -> None:
        db.log_event("INFO", "Watcher started")
        while not self._stop:
            try:
                self.poll()
            except UpstreamListingFailure as e:
                db.log_event("WARN", f"Watcher poll failed: {e}")
            except Exception as e:
                db.log_event("ERROR", f"Watcher tick failed: {type(e).__name__}: {e}")
            self.maybe_sync()
            time.sleep(max(1, self.poll_interval_s))

    def maybe_sync(self) -> None:
        now = time.monotonic()
        if now - self._last_sync >= self.sync_interval_s:
            self._last_sync = now
            self.work_queue.put(Work(action=WorkAction.SYNC))

    def poll(self) -> None:
        # Both listings must succeed before anything is enqueued.
        nodes = {n.name: n for n in self.client.list_nodes()}
        services = {s.name: s for s in self.client.list_services()}
        self._diff_services(services)
        self._diff_nodes(nodes)

    def _node_changed(self, old: NodeSnapshot, new: NodeSnapshot) -> bool:
        return self.is_ready(old) != self.is_ready(new) or node_address(old) != node_address(new)

    def _diff_nodes(self, current: dict[str, NodeSnapshot]) -> None:
        for name, snap in current.items():
            prev = self._nodes.get(name)
            if prev is None:
                if node_address(snap) is None:
                    # Not addable yet; offered again as ADD_NODE on a later poll.
                    continue
                self.work_queue.put(Work(action=WorkAction.ADD_NODE, node=snap))
            elif self._node_changed(prev, snap):
                self.work_queue.put(Work(action=WorkAction.UPDATE_NODE, node=snap))
        for name, snap in self._nodes.items():
            if name not in current:
                self.work_queue.put(Work(action=WorkAction.REMOVE_NODE, node=snap))
        self._nodes = {
            name: snap for name, snap in current.items() if name in self._nodes or node_address(snap) is not None
        }

    def _diff_services(self, current: dict[str, ServiceDef]) -> None:
        for name, svc in current.items():
            prev = self._services.get(name)
            if prev is None:
                self.work_queue.put(Work(action=WorkAction.ADD_SERVICE, service=svc))
            elif prev != svc:
                self.work_queue.put(Work(action=WorkAction.UPDATE_SERVICE, service=svc))
        for name, svc in self._services.items():
            if name not in current:
                self.work_queue.put(Work(action=WorkAction.REMOVE_SERVICE, service=svc))
        self._services = current
