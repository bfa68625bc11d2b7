"""Daemon core operations (ping, observability settings)."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from ...contracts.v1 import DaemonResponse


def try_handle_daemon_core_op(
    op: str,
    args: Dict[str, Any],
    *,
    version: str,
    now_iso: Callable[[], str],
    get_observability: Callable[[], Dict[str, Any]],
    update_observability: Callable[[Dict[str, Any]], Dict[str, Any]],
) -> Optional[DaemonResponse]:
    if op == "ping":
        return DaemonResponse(ok=True, result={"version": version, "ts": now_iso()})
    if op == "observability_get":
        return DaemonResponse(ok=True, result={"observability": get_observability()})
    if op == "observability_update":
        patch = args.get("patch") if isinstance(args.get("patch"), dict) else {}
        return DaemonResponse(ok=True, result={"observability": update_observability(patch)})
    return None
