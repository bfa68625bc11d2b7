"""Daemon request dispatch orchestration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict

from ..contracts.v1 import DaemonRequest, DaemonResponse
from .ops.automation_ops import try_handle_repo_automation_op
from .ops.daemon_core_ops import try_handle_daemon_core_op
from .ops.robot_ops import try_handle_repo_robot_op


@dataclass(frozen=True)
class RequestDispatchDeps:
    version: str
    now_iso: Callable[[], str]
    get_observability: Callable[[], Dict[str, Any]]
    update_observability: Callable[[Dict[str, Any]], Dict[str, Any]]


def dispatch_request(req: DaemonRequest, *, deps: RequestDispatchDeps, error: Callable[..., DaemonResponse]) -> DaemonResponse:
    op = str(req.op or "").strip()
    args = req.args or {}

    resp = try_handle_daemon_core_op(
        op,
        args,
        version=deps.version,
        now_iso=deps.now_iso,
        get_observability=deps.get_observability,
        update_observability=deps.update_observability,
    )
    if resp is not None:
        return resp
    resp = try_handle_repo_automation_op(op, args)
    if resp is not None:
        return resp
    resp = try_handle_repo_robot_op(op, args)
    if resp is not None:
        return resp
    return error("unknown_op", f"unknown op: {op}")
