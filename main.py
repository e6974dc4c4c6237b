from __future__ import annotations

import queue
import secrets
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from regsync import db
from regsync.bookkeeper import Bookkeeper, run_bookkeeper
from regsync.control_plane import ControlPlaneClient
from regsync.models import Work, WorkAction
from regsync.registry import build_registry, run_registry_worker
from regsync.settings import settings
from regsync.watcher import Watcher

app = FastAPI(title="Registry Sync")
security = HTTPBasic()

# The API only produces work; the bookkeeper thread is the sole owner of state.
work_queue: queue.Queue = queue.Queue()
command_queue: queue.Queue = queue.Queue(maxsize=max(0, settings.command_queue_size))
watcher: Watcher | None = None
_bookkeeper_thread: Thread | None = None
_registry_thread: Thread | None = None


def get_current_username(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    if not (
        secrets.compare_digest(credentials.username, settings.admin_user)
        and secrets.compare_digest(credentials.password, settings.admin_password)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


def start_workers() -> None:
    global watcher, _bookkeeper_thread, _registry_thread
    control_plane = ControlPlaneClient()
    bookkeeper = Bookkeeper(command_queue, lister=control_plane)
    _bookkeeper_thread = Thread(target=run_bookkeeper, args=(work_queue, bookkeeper), daemon=True)
    _bookkeeper_thread.start()
    _registry_thread = Thread(target=run_registry_worker, args=(command_queue, build_registry()), daemon=True)
    _registry_thread.start()
    if settings.enable_watcher:
        watcher = Watcher(control_plane, work_queue)
        watcher.start()


def stop_workers() -> None:
    """Drain pending work, then pending commands, then stop."""
    if watcher is not None:
        watcher.stop()
    if _bookkeeper_thread is None or not _bookkeeper_thread.is_alive():
        return
    work_queue.put(None)
    _bookkeeper_thread.join()
    command_queue.put(None)
    if _registry_thread is not None:
        _registry_thread.join()


@app.on_event("startup")
def startup() -> None:
    db.init_db()
    start_workers()


@app.on_event("shutdown")
def shutdown() -> None:
    stop_workers()


@app.get("/health")
def health() -> dict[str, object]:
    return {"status": "healthy", "pending_work": work_queue.qsize(), "pending_commands": command_queue.qsize()}


@app.get("/events")
def events(limit: int = 100, level: str | None = None) -> list[dict]:
    return db.latest_events(limit=max(1, min(1000, limit)), level=level)


@app.post("/work", status_code=status.HTTP_202_ACCEPTED)
def submit_work(work: Work, username: str = Depends(get_current_username)) -> dict[str, str]:
    work_queue.put(work)
    db.log_event(
        "INFO",
        f"Work '{work.action.value}' submitted by {username}",
        node_name=work.node.name if work.node else None,
        service_name=work.service.name if work.service else None,
    )
    return {"status": "queued", "action": work.action.value}


@app.post("/sync", status_code=status.HTTP_202_ACCEPTED)
def request_sync(username: str = Depends(get_current_username)) -> dict[str, str]:
    work_queue.put(Work(action=WorkAction.SYNC))
    return {"status": "queued", "action": WorkAction.SYNC.value}
