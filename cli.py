from __future__ import annotations

import argparse
import json
import os
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _service_payload(args: argparse.Namespace) -> dict:
    return {
        "name": args.name,
        "ports": [{"port": p} for p in args.port],
        "tags": args.tag,
    }


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Registry Sync CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    p.add_argument("--user", default=os.getenv("REGSYNC_ADMIN_USER", "admin"))
    p.add_argument("--password", default=os.getenv("REGSYNC_ADMIN_PASSWORD", "change-me"))
    sub = p.add_subparsers(dest="cmd", required=True)

    s_ev = sub.add_parser("events", help="Show journal events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--level", default=None, help="Only show this level (INFO, WARN, ERROR, ...)")

    sub.add_parser("sync", help="Queue a drift-correction pass")

    for name, help_text in (
        ("add-service", "Register a service on every ready node"),
        ("update-service", "Replace a service definition"),
        ("remove-service", "Deregister a service from every node"),
    ):
        s = sub.add_parser(name, help=help_text)
        s.add_argument("--name", required=True)
        s.add_argument("--port", type=int, action="append", default=[])
        s.add_argument("--tag", action="append", default=[])

    s_rn = sub.add_parser("remove-node", help="Forget a node and deregister all its services")
    s_rn.add_argument("--name", required=True)

    args = p.parse_args(argv)

    base = args.api.rstrip("/")
    auth = (args.user, args.password)

    if args.cmd == "events":
        params = {"limit": args.limit}
        if args.level:
            params["level"] = args.level
        _print(requests.get(f"{base}/events", params=params, timeout=10).json())
        return 0

    if args.cmd == "sync":
        r = requests.post(f"{base}/sync", auth=auth, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd in {"add-service", "update-service", "remove-service"}:
        action = args.cmd.replace("-", "_")
        payload = {"action": action, "service": _service_payload(args)}
        r = requests.post(f"{base}/work", json=payload, auth=auth, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "remove-node":
        payload = {"action": "remove_node", "node": {"name": args.name}}
        r = requests.post(f"{base}/work", json=payload, auth=auth, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
