"""Automation dispatch: turn an event into ordered task-creation instructions."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from ..contracts.v1 import AutomationAction, DispatchedAction, PromptMode, RepoAutomationConfigV2
from .automation_config import get_event_config
from .clauses import rule_matches
from .facts import EventFacts
from .time_window import is_within_window

logger = logging.getLogger("hookcode.kernel.dispatch")


def _filled(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def effective_prompt_instruction(action: AutomationAction) -> Tuple[Optional[str], PromptMode]:
    """Override wins over patch; blank strings count as unset."""
    override = _filled(action.prompt_override)
    if override is not None:
        return override, "override"
    patch = _filled(action.prompt_patch)
    if patch is not None:
        return patch, "patch"
    return None, "default"


def dispatch(
    config: RepoAutomationConfigV2,
    event_key: str,
    facts: EventFacts,
    now: Optional[datetime] = None,
) -> List[DispatchedAction]:
    """Return one instruction per enabled action of every matching, in-window rule.

    Rules are visited in array order and all matches contribute. Robots are not
    de-duplicated; coalescing is up to the task-creation side.
    """
    bucket = get_event_config(config, event_key)
    if not bucket.enabled:
        logger.debug("automation bucket %s disabled", event_key)
        return []
    now = now or datetime.now()

    out: List[DispatchedAction] = []
    for rule in bucket.rules:
        if not rule_matches(rule, facts):
            continue
        if not is_within_window(rule.time_window, now):
            logger.debug("rule %s matched outside its time window", rule.id)
            continue
        for action in rule.actions:
            if not action.enabled:
                continue
            instruction, mode = effective_prompt_instruction(action)
            out.append(
                DispatchedAction(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    robot_id=action.robot_id,
                    action_id=action.id,
                    effective_prompt_instruction=instruction,
                    prompt_mode=mode,
                )
            )
    return out


def compose_prompt(prompt_default: Optional[str], action: DispatchedAction) -> Optional[str]:
    """Apply a dispatched instruction over a robot's default prompt template."""
    instruction = (action.effective_prompt_instruction or "").strip()
    if action.prompt_mode == "override" and instruction:
        return instruction
    base = (prompt_default or "").strip()
    parts = [base, instruction] if action.prompt_mode == "patch" else [base]
    combined = "\n\n".join(p for p in parts if p).strip()
    return combined or None
