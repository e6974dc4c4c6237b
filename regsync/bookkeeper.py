from __future__ import annotations

import queue
from typing import Callable, Protocol

from . import db
from .models import NodeSnapshot, ServiceDef, Work, WorkAction
from .readiness import node_address, node_ready
from .state import CommandAction, Node, RegistryCommand, RegistryState, build_registration_id


class ReconcileError(Exception):
    """A single work item could not be applied. Never fatal for the consumer."""


class DuplicateEntity(ReconcileError):
    pass


class UnknownEntity(ReconcileError):
    pass


class InvalidEntity(ReconcileError):
    pass


class UpstreamListingFailure(ReconcileError):
    pass


class NodeLister(Protocol):
    def list_node_names(self) -> set[str]: ...


class Bookkeeper:
    """Translates cluster events into registry commands.

    Every ready node is registered for every known service; nothing else is.
    All state lives on the instance and must only be touched from the thread
    that drains the work queue.
    """

    def __init__(
        self,
        commands: queue.Queue,
        lister: NodeLister | None = None,
        is_ready: Callable[[NodeSnapshot], bool] = node_ready,
    ):
        self.commands = commands
        self.lister = lister
        self.is_ready = is_ready
        self.state = RegistryState()

    def _emit(self, cmd: RegistryCommand) -> None:
        # Blocks when a bounded command queue is full.
        self.commands.put(cmd)

    # -- attach / detach ---------------------------------------------------

    def attach(self, node: Node, service: ServiceDef) -> None:
        reg_id = build_registration_id(node.name, service.name)
        self._emit(RegistryCommand(CommandAction.ADD, reg_id, address=node.address, service=service))
        db.log_event("DEBUG", f"Requested registration {reg_id}", node_name=node.name, service_name=service.name)
        node.registrations[service.name] = reg_id

    def detach(self, node: Node, service: ServiceDef) -> None:
        reg_id = node.registrations.get(service.name)
        if reg_id is None:
            return
        self._emit(RegistryCommand(CommandAction.REMOVE, reg_id))
        db.log_event("DEBUG", f"Requested removal of {reg_id}", node_name=node.name, service_name=service.name)
        del node.registrations[service.name]

    def attach_all(self, node: Node) -> None:
        for service in self.state.iter_services():
            self.attach(node, service)

    def detach_all(self, node: Node) -> None:
        for service in self.state.iter_services():
            self.detach(node, service)

    # -- nodes -------------------------------------------------------------

    def add_node(self, snapshot: NodeSnapshot) -> None:
        if self.state.get_node(snapshot.name) is not None:
            raise DuplicateEntity(f"Attempted to add existing node '{snapshot.name}'")
        address = node_address(snapshot)
        if address is None:
            raise InvalidEntity(f"Node '{snapshot.name}' reports no address")

        node = Node(name=snapshot.name, ready=self.is_ready(snapshot), address=address)
        if node.ready:
            self.attach_all(node)
        self.state.put_node(node)
        db.log_event("INFO", f"Added node (ready={node.ready})", node_name=node.name)

    def remove_node(self, name: str) -> None:
        node = self.state.get_node(name)
        if node is None:
            raise UnknownEntity(f"Attempted to remove missing node '{name}'")
        self.detach_all(node)
        self.state.pop_node(name)
        db.log_event("INFO", "Removed node", node_name=name)

    def update_node(self, snapshot: NodeSnapshot) -> None:
        node = self.state.get_node(snapshot.name)
        if node is None:
            raise UnknownEntity(f"Attempted to update missing node '{snapshot.name}'")

        node.ready = self.is_ready(snapshot)
        node.address = node_address(snapshot) or node.address
        if node.ready:
            self.attach_all(node)
        else:
            self.detach_all(node)

    def sync(self) -> None:
        """Drop nodes that no longer exist upstream. Never adds nodes."""
        if self.lister is None:
            db.log_event("WARN", "Sync skipped: no node lister configured")
            return
        try:
            upstream = self.lister.list_node_names()
        except UpstreamListingFailure as e:
            db.log_event("WARN", f"Sync skipped: {e}")
            return

        for name in sorted(self.state.node_names() - set(upstream)):
            db.log_event("ERROR", "Bookkeeper has node that does not exist upstream", node_name=name)
            self.remove_node(name)

    # -- services ----------------------------------------------------------

    def add_service(self, service: ServiceDef) -> None:
        self.state.put_service(service)
        for node in self.state.iter_nodes():
            if node.ready:
                self.attach(node, service)
        db.log_event("INFO", "Added service", service_name=service.name)

    def remove_service(self, service: ServiceDef) -> None:
        for node in self.state.iter_nodes():
            self.detach(node, service)
        self.state.pop_service(service.name)
        db.log_event("INFO", "Removed service", service_name=service.name)

    def update_service(self, service: ServiceDef) -> None:
        self.remove_service(service)
        self.add_service(service)

    # -- dispatch ----------------------------------------------------------

    def handle(self, work: Work) -> None:
        """Apply one work item. Reconcile errors are journaled, not raised."""
        try:
            if work.action == WorkAction.ADD_NODE:
                self.add_node(work.node)
            elif work.action == WorkAction.REMOVE_NODE:
                self.remove_node(work.node.name)
            elif work.action == WorkAction.UPDATE_NODE:
                self.update_node(work.node)
            elif work.action == WorkAction.ADD_SERVICE:
                self.add_service(work.service)
            elif work.action == WorkAction.REMOVE_SERVICE:
                self.remove_service(work.service)
            elif work.action == WorkAction.UPDATE_SERVICE:
                self.update_service(work.service)
            elif work.action == WorkAction.SYNC:
                self.sync()
            else:
                db.log_event("WARN", f"Unsupported work action: {work.action}")
        except ReconcileError as e:
            db.log_event(
                "ERROR",
                f"{type(e).__name__}: {e}",
                node_name=work.node.name if work.node else None,
                service_name=work.service.name if work.service else None,
            )


def run_bookkeeper(work_queue: queue.Queue, bookkeeper: Bookkeeper) -> None:
    """Drain ``work_queue`` until a ``None`` sentinel arrives."""
    db.log_event("INFO", "Bookkeeper started")
    while True:
        work = work_queue.get()
        try:
            if work is None:
                break
            try:
                bookkeeper.handle(work)
            except Exception as e:
                db.log_event("ERROR", f"Work item failed: {type(e).__name__}: {e}")
        finally:
            work_queue.task_done()
    db.log_event("INFO", "Completed all node work")
