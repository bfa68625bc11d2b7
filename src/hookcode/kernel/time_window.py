"""Hour-level execution windows.

Windows are evaluated against the server-local hour of the current instant.
``start_hour >= end_hour`` wraps midnight (22 -> 6 covers 22:00-05:59), which also
makes ``start_hour == end_hour`` an always-open window.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Optional

from ..contracts.v1 import TaskScheduleSnapshot, TimeWindow


def _to_hour(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            num = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(num):
        return None
    hour = math.floor(num)
    return hour if 0 <= hour <= 23 else None


def normalize_time_window(raw: Any) -> Optional[TimeWindow]:
    if isinstance(raw, TimeWindow):
        return raw
    if not isinstance(raw, dict):
        return None
    start = _to_hour(raw.get("startHour", raw.get("start_hour")))
    end = _to_hour(raw.get("endHour", raw.get("end_hour")))
    if start is None or end is None:
        return None
    return TimeWindow(start_hour=start, end_hour=end)


def local_hour(now: Optional[datetime] = None) -> int:
    if now is None:
        return datetime.now().hour
    if now.tzinfo is not None:
        return now.astimezone().hour
    return now.hour


def is_within_window(window: Optional[TimeWindow], now: Optional[datetime] = None) -> bool:
    if window is None:
        return True
    hour = local_hour(now)
    start, end = window.start_hour, window.end_hour
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def resolve_task_schedule(
    *,
    chat_window: Optional[TimeWindow] = None,
    trigger_window: Optional[TimeWindow] = None,
    robot_window: Optional[TimeWindow] = None,
    rule_id: Optional[str] = None,
) -> Optional[TaskScheduleSnapshot]:
    """Pick the effective window for a task: chat > trigger > robot."""
    if chat_window is not None:
        return TaskScheduleSnapshot(source="chat", window=chat_window)
    if trigger_window is not None:
        return TaskScheduleSnapshot(source="trigger", window=trigger_window, rule_id=rule_id)
    if robot_window is not None:
        return TaskScheduleSnapshot(source="robot", window=robot_window)
    return None
