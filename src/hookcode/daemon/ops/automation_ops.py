"""Repository automation operations for daemon."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ...contracts.v1 import AUTOMATION_EVENT_KEYS, DaemonError, DaemonResponse
from ...kernel.automation_config import dump_automation_config, get_event_config
from ...kernel.automation_store import (
    AutomationConfigValidationError,
    AutomationRevisionConflictError,
    find_robot_automation_usages,
    load_repo_automation,
    save_repo_automation,
)
from ...kernel.dispatch import compose_prompt, dispatch
from ...kernel.facts import EventFacts, build_event_facts, map_provider_event
from ...kernel.robots import ROBOTS
from ...kernel.time_window import resolve_task_schedule
from ...util.time import parse_utc_iso, utc_now_iso

logger = logging.getLogger("hookcode.daemon.automation_ops")


def _error(code: str, message: str, *, details: Optional[Dict[str, Any]] = None) -> DaemonResponse:
    return DaemonResponse(ok=False, error=DaemonError(code=code, message=message, details=(details or {})))


def _parse_expected_revision(args: Dict[str, Any]) -> tuple[Optional[int], Optional[DaemonResponse]]:
    raw = args.get("expected_revision")
    if raw is None:
        return None, None
    try:
        return int(raw), None
    except (TypeError, ValueError):
        return None, _error("invalid_request", "expected_revision must be an integer")


def _repo_id(args: Dict[str, Any]) -> str:
    return str(args.get("repo_id") or "").strip()


def handle_repo_automation_get(args: Dict[str, Any]) -> DaemonResponse:
    repo_id = _repo_id(args)
    if not repo_id:
        return _error("missing_repo_id", "missing repo_id")
    config, revision = load_repo_automation(repo_id)
    return DaemonResponse(
        ok=True,
        result={
            "repo_id": repo_id,
            "config": dump_automation_config(config),
            "revision": revision,
            "event_keys": list(AUTOMATION_EVENT_KEYS),
            "server_now": utc_now_iso(),
        },
    )


def handle_repo_automation_update(args: Dict[str, Any]) -> DaemonResponse:
    repo_id = _repo_id(args)
    expected_revision, err = _parse_expected_revision(args)
    if err is not None:
        return err
    if not repo_id:
        return _error("missing_repo_id", "missing repo_id")
    raw = args.get("config")
    if not isinstance(raw, dict):
        return _error("invalid_request", "config must be an object")
    try:
        config, revision = save_repo_automation(repo_id, raw, expected_revision=expected_revision)
    except AutomationRevisionConflictError as e:
        return _error(
            "version_conflict",
            "automation revision mismatch",
            details={"expected_revision": e.expected, "current_revision": e.current},
        )
    except AutomationConfigValidationError as e:
        return _error("invalid_automation_config", str(e), details={"code": e.code, **e.details})
    return DaemonResponse(
        ok=True,
        result={"repo_id": repo_id, "config": dump_automation_config(config), "revision": revision},
    )


def _parse_now(args: Dict[str, Any]) -> tuple[Optional[datetime], Optional[DaemonResponse]]:
    raw = str(args.get("now") or "").strip()
    if not raw:
        return None, None
    dt = parse_utc_iso(raw)
    if dt is None:
        return None, _error("invalid_request", f"invalid now timestamp: {raw}")
    return dt, None


def handle_repo_automation_dispatch(args: Dict[str, Any]) -> DaemonResponse:
    """Map a webhook event to facts, run the rules, and resolve robots/prompts per action."""
    repo_id = _repo_id(args)
    if not repo_id:
        return _error("missing_repo_id", "missing repo_id")
    now, err = _parse_now(args)
    if err is not None:
        return err

    robots = ROBOTS.store.list_by_repo(repo_id)
    payload = args.get("payload") if isinstance(args.get("payload"), dict) else {}
    provider = str(args.get("provider") or "").strip()
    if provider:
        try:
            mapping = map_provider_event(provider, args.get("event_name"), payload)
        except ValueError as e:
            return _error("invalid_request", str(e))
        if mapping is None:
            return DaemonResponse(ok=True, result={"repo_id": repo_id, "event_key": "", "actions": [], "skipped": []})
        event_key = mapping.event_key
        facts = build_event_facts(event_key, payload, sub_type=mapping.sub_type, robots=robots)
    else:
        event_key = str(args.get("event_key") or "").strip()
        if not event_key:
            return _error("missing_event_key", "missing event_key (or provider + event_name)")
        raw_facts = args.get("facts")
        if raw_facts is None:
            facts = build_event_facts(event_key, payload, robots=robots)
        elif isinstance(raw_facts, dict):
            facts = EventFacts(raw_facts)
        else:
            return _error("invalid_request", "facts must be an object")

    config, _ = load_repo_automation(repo_id)
    dispatched = dispatch(config, event_key, facts, now)
    rules = {r.id: r for r in get_event_config(config, event_key).rules}
    robots_by_id = {r.id: r for r in robots}

    actions: List[Dict[str, Any]] = []
    skipped: List[Dict[str, Any]] = []
    for item in dispatched:
        out = item.model_dump(by_alias=True)
        robot = robots_by_id.get(item.robot_id)
        if robot is None or not robot.enabled:
            out["reason"] = "robot_not_found" if robot is None else "robot_disabled"
            skipped.append(out)
            continue
        rule = rules.get(item.rule_id)
        schedule = resolve_task_schedule(
            trigger_window=rule.time_window if rule is not None else None,
            robot_window=robot.time_window,
            rule_id=item.rule_id,
        )
        out["robotName"] = robot.name
        out["prompt"] = compose_prompt(robot.prompt_default, item)
        out["schedule"] = schedule.model_dump(by_alias=True, exclude_none=True) if schedule else None
        actions.append(out)

    logger.info(
        "repo %s %s event: %d action(s), %d skipped", repo_id, event_key, len(actions), len(skipped)
    )
    return DaemonResponse(
        ok=True,
        result={
            "repo_id": repo_id,
            "event_key": event_key,
            "facts": facts.to_dict(),
            "actions": actions,
            "skipped": skipped,
        },
    )


def handle_repo_automation_usages(args: Dict[str, Any]) -> DaemonResponse:
    repo_id = _repo_id(args)
    robot_id = str(args.get("robot_id") or "").strip()
    if not repo_id:
        return _error("missing_repo_id", "missing repo_id")
    if not robot_id:
        return _error("missing_robot_id", "missing robot_id")
    config, _ = load_repo_automation(repo_id)
    return DaemonResponse(
        ok=True,
        result={"repo_id": repo_id, "robot_id": robot_id, "usages": find_robot_automation_usages(config, robot_id)},
    )


def try_handle_repo_automation_op(op: str, args: Dict[str, Any]) -> Optional[DaemonResponse]:
    if op == "repo_automation_get":
        return handle_repo_automation_get(args)
    if op == "repo_automation_update":
        return handle_repo_automation_update(args)
    if op == "repo_automation_dispatch":
        return handle_repo_automation_dispatch(args)
    if op == "repo_automation_usages":
        return handle_repo_automation_usages(args)
    return None
