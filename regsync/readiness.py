from __future__ import annotations

from .models import NodeSnapshot


def node_ready(node: NodeSnapshot) -> bool:
    """True when the node reports a ``Ready`` condition with status ``"True"``."""
    for cond in node.conditions:
        if cond.type == "Ready":
            return cond.status == "True"
    return False


def node_address(node: NodeSnapshot) -> str | None:
    """First address the node reports, or None if it reports none."""
    if not node.addresses:
        return None
    return node.addresses[0].address
