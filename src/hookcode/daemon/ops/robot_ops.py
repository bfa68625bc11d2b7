"""Repository robot operations for daemon."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ...contracts.v1 import DaemonError, DaemonResponse
from ...kernel.automation_store import find_robot_automation_usages, load_repo_automation
from ...kernel.robots import (
    ROBOTS,
    DefaultRobotConflictError,
    RobotNotFoundError,
    RobotRepoMismatchError,
)


def _error(code: str, message: str, *, details: Optional[Dict[str, Any]] = None) -> DaemonResponse:
    return DaemonResponse(ok=False, error=DaemonError(code=code, message=message, details=(details or {})))


def _ids(args: Dict[str, Any]) -> tuple[str, str]:
    return str(args.get("repo_id") or "").strip(), str(args.get("robot_id") or "").strip()


def _expected_revision(args: Dict[str, Any]) -> Optional[int]:
    raw = args.get("expected_revision")
    if raw is None:
        return None
    return int(raw)


def _robot_out(robot: Any) -> Dict[str, Any]:
    return robot.model_dump(by_alias=True, exclude_none=True)


def handle_repo_robot_list(args: Dict[str, Any]) -> DaemonResponse:
    repo_id, _ = _ids(args)
    if not repo_id:
        return _error("missing_repo_id", "missing repo_id")
    robots = ROBOTS.store.list_by_repo(repo_id)
    return DaemonResponse(
        ok=True,
        result={
            "repo_id": repo_id,
            "robots": [_robot_out(r) for r in robots],
            "revision": ROBOTS.store.revision(repo_id),
        },
    )


def handle_repo_robot_upsert(args: Dict[str, Any]) -> DaemonResponse:
    repo_id, _ = _ids(args)
    if not repo_id:
        return _error("missing_repo_id", "missing repo_id")
    raw = args.get("robot")
    if not isinstance(raw, dict):
        return _error("invalid_request", "robot must be an object")
    try:
        robot = ROBOTS.upsert(repo_id, raw, expected_revision=_expected_revision(args))
    except DefaultRobotConflictError as e:
        return _error("version_conflict", str(e))
    except ValueError as e:
        return _error("repo_robot_upsert_failed", str(e))
    return DaemonResponse(ok=True, result={"repo_id": repo_id, "robot": _robot_out(robot)})


def handle_repo_robot_set_default(args: Dict[str, Any]) -> DaemonResponse:
    repo_id, robot_id = _ids(args)
    if not repo_id:
        return _error("missing_repo_id", "missing repo_id")
    if not robot_id:
        return _error("missing_robot_id", "missing robot_id")
    try:
        robot = ROBOTS.set_default(repo_id, robot_id, expected_revision=_expected_revision(args))
    except RobotNotFoundError as e:
        return _error("robot_not_found", str(e))
    except RobotRepoMismatchError as e:
        return _error("robot_repo_mismatch", str(e))
    except DefaultRobotConflictError as e:
        return _error("version_conflict", str(e))
    return DaemonResponse(ok=True, result={"repo_id": repo_id, "robot": _robot_out(robot)})


def handle_repo_robot_delete(args: Dict[str, Any]) -> DaemonResponse:
    repo_id, robot_id = _ids(args)
    if not repo_id:
        return _error("missing_repo_id", "missing repo_id")
    if not robot_id:
        return _error("missing_robot_id", "missing robot_id")
    config, _ = load_repo_automation(repo_id)
    usages = find_robot_automation_usages(config, robot_id)
    if usages:
        return _error(
            "robot_in_use",
            f"robot {robot_id} is referenced by {len(usages)} automation rule(s)",
            details={"usages": usages},
        )
    if not ROBOTS.delete(repo_id, robot_id):
        return _error("robot_not_found", f"robot not found: {robot_id}")
    return DaemonResponse(ok=True, result={"repo_id": repo_id, "robot_id": robot_id, "deleted": True})


def try_handle_repo_robot_op(op: str, args: Dict[str, Any]) -> Optional[DaemonResponse]:
    if op == "repo_robot_list":
        return handle_repo_robot_list(args)
    if op == "repo_robot_upsert":
        return handle_repo_robot_upsert(args)
    if op == "repo_robot_set_default":
        return handle_repo_robot_set_default(args)
    if op == "repo_robot_delete":
        return handle_repo_robot_delete(args)
    return None
