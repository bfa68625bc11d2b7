"""Per-repository automation config persistence.

Stored as ``repos/<repo_id>/automation.json``::

    {"v": 1, "revision": 3, "updated_at": "...", "config": {"version": 2, "events": {...}}}

The config is normalized on every load and on every save; v1 documents are
migrated in memory and written back as v2 on the next save only.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..contracts.v1 import RepoAutomationConfigV2
from ..paths import repo_dir
from ..util.fs import atomic_write_json, read_json
from ..util.time import utc_now_iso
from .automation_config import dump_automation_config, is_default_fallback, normalize_automation_config

logger = logging.getLogger("hookcode.kernel.automation_store")

_LOCK = threading.Lock()


class AutomationConfigValidationError(ValueError):
    def __init__(self, message: str, *, code: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class AutomationRevisionConflictError(RuntimeError):
    def __init__(self, *, expected: int, current: int) -> None:
        super().__init__(f"automation revision mismatch (expected {expected}, got {current})")
        self.expected = expected
        self.current = current


def _automation_path(repo_id: str) -> Path:
    return repo_dir(repo_id) / "automation.json"


def validate_automation_config(config: RepoAutomationConfigV2) -> None:
    """Editor-boundary checks: named rules with at least one robot action."""
    for event_key, bucket in config.events.items():
        for rule in bucket.rules:
            details = {"eventKey": event_key, "ruleId": rule.id, "ruleName": rule.name}
            if not rule.name.strip():
                raise AutomationConfigValidationError(
                    "Automation rule name is required", code="RULE_NAME_REQUIRED", details=details
                )
            if not rule.actions:
                raise AutomationConfigValidationError(
                    "Automation rule must select at least 1 robot", code="RULE_ROBOT_REQUIRED", details=details
                )


def find_robot_automation_usages(config: RepoAutomationConfigV2, robot_id: str) -> List[Dict[str, str]]:
    usages: List[Dict[str, str]] = []
    seen: set[str] = set()
    for event_key, bucket in config.events.items():
        for rule in bucket.rules:
            if not any(a.robot_id == robot_id for a in rule.actions):
                continue
            name = rule.name.strip() or "Unnamed rule"
            key = f"{event_key}:{rule.id or name}"
            if key in seen:
                continue
            seen.add(key)
            usages.append({"eventKey": event_key, "ruleId": rule.id, "ruleName": name})
    return usages


def _read_doc(repo_id: str) -> Dict[str, Any]:
    raw = read_json(_automation_path(repo_id))
    return raw if isinstance(raw, dict) else {}


def _revision_of(doc: Dict[str, Any]) -> int:
    try:
        return max(0, int(doc.get("revision") or 0))
    except (TypeError, ValueError):
        return 0


def load_repo_automation(repo_id: str) -> Tuple[RepoAutomationConfigV2, int]:
    doc = _read_doc(repo_id)
    raw = doc.get("config")
    if is_default_fallback(raw):
        logger.warning("automation config for repo %s is unreadable; falling back to defaults", repo_id)
    return normalize_automation_config(raw), _revision_of(doc)


def save_repo_automation(
    repo_id: str,
    raw: Any,
    *,
    expected_revision: Optional[int] = None,
) -> Tuple[RepoAutomationConfigV2, int]:
    config = normalize_automation_config(raw)
    validate_automation_config(config)
    with _LOCK:
        doc = _read_doc(repo_id)
        current = _revision_of(doc)
        if expected_revision is not None and int(expected_revision) != current:
            raise AutomationRevisionConflictError(expected=int(expected_revision), current=current)
        next_revision = current + 1
        atomic_write_json(
            _automation_path(repo_id),
            {
                "v": 1,
                "revision": next_revision,
                "updated_at": utc_now_iso(),
                "config": dump_automation_config(config),
            },
            indent=2,
        )
    logger.info("saved automation config for repo %s (revision %d)", repo_id, next_revision)
    return config, next_revision
