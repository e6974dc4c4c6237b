from __future__ import annotations

import os
from dataclasses import dataclass


_TRUTHY = {"1", "true", "yes", "y", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "").strip().lower()
    return raw in _TRUTHY if raw else default


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    try:
        value = int(os.getenv(name, default))
    except ValueError:
        return default
    return max(minimum, value)


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("REGSYNC_DB_PATH", "regsync.db")
    sync_interval_s: int = _env_int("REGSYNC_SYNC_INTERVAL_S", 60, minimum=1)
    poll_interval_s: int = _env_int("REGSYNC_POLL_INTERVAL_S", 5, minimum=1)
    http_timeout_s: int = _env_int("REGSYNC_HTTP_TIMEOUT_S", 10, minimum=1)
    # 0 keeps the command queue unbounded; anything else applies back-pressure.
    command_queue_size: int = _env_int("REGSYNC_COMMAND_QUEUE_SIZE", 0)

    # Cluster control plane
    control_plane_url: str = os.getenv("REGSYNC_CONTROL_PLANE_URL", "http://localhost:8001")
    control_plane_token: str | None = os.getenv("REGSYNC_CONTROL_PLANE_TOKEN")
    enable_watcher: bool = _env_bool("REGSYNC_ENABLE_WATCHER", False)

    # Registry backend (Consul agent). Empty means keep registrations in memory.
    registry_url: str = os.getenv("REGSYNC_REGISTRY_URL", "")

    # API auth for mutating endpoints
    admin_user: str = os.getenv("REGSYNC_ADMIN_USER", "admin")
    admin_password: str = os.getenv("REGSYNC_ADMIN_PASSWORD", "change-me")


settings = Settings()
