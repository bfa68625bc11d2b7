"""Repository automation contracts.

An automation config holds one event bucket per repository event kind
(issue, commit, merge_request). Each bucket carries ordered rules; a rule is a
clause match plus the robot actions to queue when it matches.

Persisted documents use camelCase keys (robotId, promptOverride, startHour, ...).
Models accept both spellings and dump with ``by_alias=True``.
"""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AUTOMATION_EVENT_KEYS = ("issue", "commit", "merge_request")
LEGACY_AUTOMATION_EVENT_KEYS = ("issue_created", "issue_comment", "commit_review")
AUTOMATION_CLAUSE_OPS = ("equals", "in", "containsAny", "matchesAny", "exists", "textContainsAny")

PromptMode = Literal["override", "patch", "default"]

_MODEL_CONFIG = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class AutomationClause(BaseModel):
    field: str
    # Kept as a plain string: clauses written by newer editors must still load.
    op: str
    value: Optional[str] = None
    values: Optional[List[str]] = None
    negate: bool = False

    model_config = _MODEL_CONFIG


class AutomationMatch(BaseModel):
    all: Optional[List[AutomationClause]] = None
    any: Optional[List[AutomationClause]] = None

    model_config = _MODEL_CONFIG


class AutomationAction(BaseModel):
    id: str
    robot_id: str = Field(alias="robotId")
    enabled: bool = True
    prompt_override: Optional[str] = Field(default=None, alias="promptOverride")
    prompt_patch: Optional[str] = Field(default=None, alias="promptPatch")

    model_config = _MODEL_CONFIG


class TimeWindow(BaseModel):
    """Hour-of-day window [start_hour, end_hour) in server-local time."""

    start_hour: int = Field(alias="startHour", ge=0, le=23)
    end_hour: int = Field(alias="endHour", ge=0, le=23)

    model_config = _MODEL_CONFIG


class AutomationRule(BaseModel):
    id: str
    name: str = ""
    enabled: bool = True
    match: Optional[AutomationMatch] = None
    actions: List[AutomationAction] = Field(default_factory=list)
    time_window: Optional[TimeWindow] = Field(default=None, alias="timeWindow")

    model_config = _MODEL_CONFIG


class AutomationEventConfig(BaseModel):
    enabled: bool = True
    rules: List[AutomationRule] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class RepoAutomationConfigV1(BaseModel):
    """Legacy layout keyed by issue_created / issue_comment / commit_review. Load-only."""

    version: Literal[1] = 1
    events: Dict[str, AutomationEventConfig] = Field(default_factory=dict)

    model_config = _MODEL_CONFIG


class RepoAutomationConfigV2(BaseModel):
    version: Literal[2] = 2
    events: Dict[str, AutomationEventConfig] = Field(default_factory=dict)

    model_config = _MODEL_CONFIG


class DispatchedAction(BaseModel):
    """One task-creation instruction produced by a matching rule."""

    rule_id: str = Field(alias="ruleId")
    rule_name: str = Field(default="", alias="ruleName")
    robot_id: str = Field(alias="robotId")
    action_id: str = Field(default="", alias="actionId")
    effective_prompt_instruction: Optional[str] = Field(default=None, alias="effectivePromptInstruction")
    prompt_mode: PromptMode = Field(default="default", alias="promptMode")

    model_config = _MODEL_CONFIG


class TaskScheduleSnapshot(BaseModel):
    source: Literal["chat", "trigger", "robot"]
    window: TimeWindow
    timezone: Literal["server"] = "server"
    rule_id: Optional[str] = Field(default=None, alias="ruleId")

    model_config = _MODEL_CONFIG
