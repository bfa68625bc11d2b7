"""Coalescing auto-save for the automation rule editor.

States::

    IDLE --edit--> SAVING --ok--> SAVED
                     |  \\--fail--> FAILED --retry/edit--> SAVING
                     \\--edit--> SAVING_WITH_PENDING --ok/fail--> SAVING (latest pending edit)

Only the newest edit made while a save is in flight is kept. Edits equal to the
last saved config do not start a save. The machine never performs I/O itself;
every transition returns the config the caller should persist next (or None).
"""

from __future__ import annotations

import json
import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional

from ..contracts.v1 import RepoAutomationConfigV2
from .automation_config import dump_automation_config, normalize_automation_config

logger = logging.getLogger("hookcode.kernel.autosave")


class AutoSaveState(Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVING_WITH_PENDING = "saving_with_pending"
    SAVED = "saved"
    FAILED = "failed"


def _serialize(config: RepoAutomationConfigV2) -> str:
    return json.dumps(dump_automation_config(config), sort_keys=True, ensure_ascii=False)


class AutoSaveMachine:
    def __init__(self, baseline: Any = None) -> None:
        self._lock = threading.Lock()
        self.state = AutoSaveState.IDLE
        self.last_error: Optional[BaseException] = None
        self._saved = ""
        self._in_flight: Optional[RepoAutomationConfigV2] = None
        self._pending: Optional[RepoAutomationConfigV2] = None
        self._failed: Optional[RepoAutomationConfigV2] = None
        self.reset(baseline)

    def reset(self, baseline: Any = None) -> None:
        """Adopt ``baseline`` as already saved (repo switch / first load)."""
        with self._lock:
            self._saved = _serialize(normalize_automation_config(baseline))
            self._in_flight = None
            self._pending = None
            self._failed = None
            self.last_error = None
            self.state = AutoSaveState.IDLE

    @property
    def in_flight(self) -> Optional[RepoAutomationConfigV2]:
        return self._in_flight

    def _start(self, config: RepoAutomationConfigV2) -> RepoAutomationConfigV2:
        self._in_flight = config
        self._pending = None
        self.state = AutoSaveState.SAVING
        return config

    def on_edit(self, config: Any) -> Optional[RepoAutomationConfigV2]:
        cfg = normalize_automation_config(config)
        with self._lock:
            if self.state in (AutoSaveState.SAVING, AutoSaveState.SAVING_WITH_PENDING):
                self._pending = cfg
                self.state = AutoSaveState.SAVING_WITH_PENDING
                return None
            if _serialize(cfg) == self._saved:
                self._failed = None
                self.state = AutoSaveState.SAVED
                return None
            self._failed = None
            return self._start(cfg)

    def _next_pending(self) -> Optional[RepoAutomationConfigV2]:
        pending = self._pending
        self._pending = None
        if pending is not None and _serialize(pending) != self._saved:
            return self._start(pending)
        return None

    def on_save_succeeded(self) -> Optional[RepoAutomationConfigV2]:
        with self._lock:
            if self._in_flight is None:
                return None
            self._saved = _serialize(self._in_flight)
            self._in_flight = None
            self.last_error = None
            nxt = self._next_pending()
            if nxt is None:
                self.state = AutoSaveState.SAVED
            return nxt

    def on_save_failed(self, error: BaseException) -> Optional[RepoAutomationConfigV2]:
        with self._lock:
            failed = self._in_flight
            self._in_flight = None
            self.last_error = error
            reverted = self._pending is not None and _serialize(self._pending) == self._saved
            nxt = self._next_pending()
            if nxt is not None:
                return nxt
            if reverted:
                # The failed edit was undone while in flight; nothing is left to save.
                self._failed = None
                self.last_error = None
                self.state = AutoSaveState.SAVED
                return None
            self._failed = failed
            self.state = AutoSaveState.FAILED
            return None

    def retry(self) -> Optional[RepoAutomationConfigV2]:
        with self._lock:
            if self.state != AutoSaveState.FAILED or self._failed is None:
                return None
            failed = self._failed
            self._failed = None
            return self._start(failed)


def run_autosave(
    machine: AutoSaveMachine,
    config: Any,
    save: Callable[[RepoAutomationConfigV2], Any],
) -> AutoSaveState:
    """Feed one edit and drive saves until the machine settles."""
    nxt = machine.on_edit(config)
    while nxt is not None:
        try:
            save(nxt)
        except Exception as e:
            logger.warning("automation auto-save failed: %s", e)
            nxt = machine.on_save_failed(e)
            continue
        nxt = machine.on_save_succeeded()
    return machine.state
