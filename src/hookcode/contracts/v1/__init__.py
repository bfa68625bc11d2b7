from .automation import (
    AUTOMATION_CLAUSE_OPS,
    AUTOMATION_EVENT_KEYS,
    LEGACY_AUTOMATION_EVENT_KEYS,
    AutomationAction,
    AutomationClause,
    AutomationEventConfig,
    AutomationMatch,
    AutomationRule,
    DispatchedAction,
    PromptMode,
    RepoAutomationConfigV1,
    RepoAutomationConfigV2,
    TaskScheduleSnapshot,
    TimeWindow,
)
from .ipc import DaemonError, DaemonRequest, DaemonResponse
from .robot import RepoRobot, RobotPermission

__all__ = [
    "AUTOMATION_CLAUSE_OPS",
    "AUTOMATION_EVENT_KEYS",
    "LEGACY_AUTOMATION_EVENT_KEYS",
    "AutomationAction",
    "AutomationClause",
    "AutomationEventConfig",
    "AutomationMatch",
    "AutomationRule",
    "DaemonError",
    "DaemonRequest",
    "DaemonResponse",
    "DispatchedAction",
    "PromptMode",
    "RepoAutomationConfigV1",
    "RepoAutomationConfigV2",
    "RepoRobot",
    "RobotPermission",
    "TaskScheduleSnapshot",
    "TimeWindow",
]
