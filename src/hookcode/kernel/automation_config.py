"""Repository automation config normalization and immutable editor helpers.

Persisted configs are loosely typed JSON (``version`` 1 or 2, or garbage). They are
coerced into ``RepoAutomationConfigV1``/``RepoAutomationConfigV2`` at the boundary
and only the v2 shape is ever returned. Normalization never raises.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Union

from ..contracts.v1 import (
    AUTOMATION_EVENT_KEYS,
    LEGACY_AUTOMATION_EVENT_KEYS,
    AutomationAction,
    AutomationClause,
    AutomationEventConfig,
    AutomationMatch,
    AutomationRule,
    RepoAutomationConfigV1,
    RepoAutomationConfigV2,
)
from .time_window import normalize_time_window

logger = logging.getLogger("hookcode.kernel.automation_config")

SUBTYPE_FIELD = "event.subType"

# legacy v1 bucket -> (v2 bucket, injected event.subType)
_V1_BUCKETS = tuple(
    zip(LEGACY_AUTOMATION_EVENT_KEYS, ("issue", "issue", "commit"), ("created", "commented", "created"))
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def default_event_config() -> AutomationEventConfig:
    return AutomationEventConfig(enabled=True, rules=[])


def default_automation_config() -> RepoAutomationConfigV2:
    return RepoAutomationConfigV2(events={key: default_event_config() for key in AUTOMATION_EVENT_KEYS})


def _coerce_clause(raw: Any) -> Optional[AutomationClause]:
    if isinstance(raw, AutomationClause):
        return raw
    if not isinstance(raw, dict):
        return None
    field = _str(raw.get("field")).strip()
    op = _str(raw.get("op")).strip()
    if not field or not op:
        return None
    values = raw.get("values")
    return AutomationClause(
        field=field,
        op=op,
        value=raw.get("value") if isinstance(raw.get("value"), str) else None,
        values=[v for v in values if isinstance(v, str)] if isinstance(values, list) else None,
        negate=_bool(raw.get("negate"), False),
    )


def _coerce_clauses(raw: Any) -> Optional[List[AutomationClause]]:
    if not isinstance(raw, list):
        return None
    out: List[AutomationClause] = []
    for item in raw:
        clause = _coerce_clause(item)
        if clause is not None:
            out.append(clause)
    return out


def _coerce_match(raw: Any) -> Optional[AutomationMatch]:
    if not isinstance(raw, dict):
        return None
    all_ = _coerce_clauses(raw.get("all"))
    any_ = _coerce_clauses(raw.get("any"))
    if all_ is None and any_ is None:
        return None
    return AutomationMatch(all=all_, any=any_)


def _coerce_action(raw: Any) -> Optional[AutomationAction]:
    if not isinstance(raw, dict):
        return None
    robot_id = _str(raw.get("robotId", raw.get("robot_id"))).strip()
    if not robot_id:
        return None
    override = raw.get("promptOverride", raw.get("prompt_override"))
    patch = raw.get("promptPatch", raw.get("prompt_patch"))
    return AutomationAction(
        id=_str(raw.get("id")).strip() or _new_id(),
        robot_id=robot_id,
        enabled=_bool(raw.get("enabled"), True),
        prompt_override=override if isinstance(override, str) else None,
        prompt_patch=patch if isinstance(patch, str) else None,
    )


def _coerce_rule(raw: Any) -> Optional[AutomationRule]:
    if not isinstance(raw, dict):
        return None
    actions: List[AutomationAction] = []
    for item in _list(raw.get("actions")):
        action = _coerce_action(item)
        if action is not None:
            actions.append(action)
    return AutomationRule(
        id=_str(raw.get("id")).strip() or _new_id(),
        name=_str(raw.get("name")).strip(),
        enabled=_bool(raw.get("enabled"), True),
        match=_coerce_match(raw.get("match")),
        actions=actions,
        time_window=normalize_time_window(raw.get("timeWindow", raw.get("time_window"))),
    )


def _coerce_event_config(raw: Any) -> AutomationEventConfig:
    if not isinstance(raw, dict):
        return default_event_config()
    rules: List[AutomationRule] = []
    for item in _list(raw.get("rules")):
        rule = _coerce_rule(item)
        if rule is not None:
            rules.append(rule)
    return AutomationEventConfig(enabled=_bool(raw.get("enabled"), True), rules=rules)


def _coerce_events(raw: Any) -> Dict[str, AutomationEventConfig]:
    events: Dict[str, AutomationEventConfig] = {}
    if not isinstance(raw, dict):
        return events
    for key, value in raw.items():
        if not isinstance(key, str) or not key.strip():
            continue
        events[key.strip()] = _coerce_event_config(value)
    return events


def with_subtype_clause(rule: AutomationRule, sub_type: str) -> AutomationRule:
    """Prepend an ``event.subType in [sub_type]`` clause to ``match.all``."""
    clause = AutomationClause(field=SUBTYPE_FIELD, op="in", values=[sub_type])
    if rule.match is None:
        return rule.model_copy(update={"match": AutomationMatch(all=[clause])})
    all_ = [clause, *(rule.match.all or [])]
    return rule.model_copy(update={"match": rule.match.model_copy(update={"all": all_})})


def migrate_v1_to_v2(v1: RepoAutomationConfigV1) -> RepoAutomationConfigV2:
    events = dict(default_automation_config().events)
    rules: Dict[str, List[AutomationRule]] = {"issue": [], "commit": []}
    enabled: Dict[str, List[bool]] = {"issue": [], "commit": []}
    for legacy_key, target, sub_type in _V1_BUCKETS:
        bucket = v1.events.get(legacy_key) or default_event_config()
        enabled[target].append(bucket.enabled)
        rules[target].extend(with_subtype_clause(r, sub_type) for r in bucket.rules)
    for target in ("issue", "commit"):
        events[target] = AutomationEventConfig(enabled=any(enabled[target]), rules=rules[target])
    return RepoAutomationConfigV2(events=events)


def _version_of(raw: Dict[str, Any]) -> Optional[int]:
    version = raw.get("version")
    if isinstance(version, bool) or not isinstance(version, int):
        return None
    return version


def normalize_automation_config(raw: Any) -> RepoAutomationConfigV2:
    """Coerce any persisted/incoming automation config into the canonical v2 shape."""
    if isinstance(raw, (RepoAutomationConfigV1, RepoAutomationConfigV2)):
        raw = raw.model_dump(by_alias=True)
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.debug("automation config is not valid JSON; using defaults")
            return default_automation_config()
    if not isinstance(raw, dict):
        return default_automation_config()

    version = _version_of(raw)
    if version == 1:
        v1 = RepoAutomationConfigV1(events=_coerce_events(raw.get("events")))
        return migrate_v1_to_v2(v1)
    if version == 2:
        events = dict(default_automation_config().events)
        events.update(_coerce_events(raw.get("events")))
        return RepoAutomationConfigV2(events=events)

    logger.debug("unsupported automation config version %r; using defaults", raw.get("version"))
    return default_automation_config()


def is_default_fallback(raw: Any) -> bool:
    """True when ``raw`` carries content that normalization had to discard wholesale."""
    if raw is None or raw == {}:
        return False
    if isinstance(raw, RepoAutomationConfigV2):
        return False
    if isinstance(raw, dict):
        return _version_of(raw) not in (1, 2)
    return True


def dump_automation_config(config: RepoAutomationConfigV2) -> Dict[str, Any]:
    return config.model_dump(by_alias=True, exclude_none=True)


def get_event_config(config: RepoAutomationConfigV2, event_key: str) -> AutomationEventConfig:
    found = config.events.get(str(event_key))
    if found is not None:
        return found
    return default_event_config()


def set_event_config(
    config: RepoAutomationConfigV2,
    event_key: str,
    next_config: Union[AutomationEventConfig, Dict[str, Any]],
) -> RepoAutomationConfigV2:
    bucket = next_config if isinstance(next_config, AutomationEventConfig) else _coerce_event_config(next_config)
    events = dict(config.events)
    events[str(event_key)] = bucket
    return config.model_copy(update={"events": events})


def upsert_rule(rules: List[AutomationRule], next_rule: AutomationRule) -> List[AutomationRule]:
    if not any(r.id == next_rule.id for r in rules):
        return [*rules, next_rule]
    return [next_rule if r.id == next_rule.id else r for r in rules]


def remove_rule(rules: List[AutomationRule], rule_id: str) -> List[AutomationRule]:
    return [r for r in rules if r.id != rule_id]
