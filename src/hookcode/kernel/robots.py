"""Repository robots and the one-default-per-permission invariant.

Robots of a repository live in ``repos/<repo_id>/robots.json``. Every write is a
single atomic document replace, so a failed write leaves the previous state
(including the previous default robot) untouched.

``DefaultRobotRegistry`` serializes default changes per ``(repo_id, permission)``;
requests for different keys never wait on each other's lock.
"""

from __future__ import annotations

import logging
import secrets
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..contracts.v1 import RepoRobot
from ..paths import ensure_home, repo_dir
from ..util.fs import atomic_write_json, read_json
from ..util.time import utc_now_iso
from .time_window import normalize_time_window

logger = logging.getLogger("hookcode.kernel.robots")

PERMISSIONS = ("read", "write")

# snake_case field name -> persisted camelCase key
_ROBOT_ALIASES = {name: (info.alias or name) for name, info in RepoRobot.model_fields.items()}


class RobotNotFoundError(LookupError):
    pass


class RobotRepoMismatchError(ValueError):
    pass


class DefaultRobotConflictError(RuntimeError):
    """A concurrent change won the race; nothing was written."""


class DefaultRobotInvariantError(RuntimeError):
    """Zero or several defaults after a default change. Always a bug."""


def _robots_path(repo_id: str) -> Path:
    return repo_dir(repo_id) / "robots.json"


def _new_robot_id() -> str:
    return f"rb_{secrets.token_hex(6)}"


def _new_robots_doc() -> Dict[str, Any]:
    now = utc_now_iso()
    return {"v": 1, "revision": 0, "created_at": now, "updated_at": now, "robots": {}}


def _normalize_robots_doc(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, dict) or not raw:
        return _new_robots_doc()
    doc = dict(raw)
    if not isinstance(doc.get("robots"), dict):
        doc["robots"] = {}
    try:
        doc["revision"] = max(0, int(doc.get("revision") or 0))
    except (TypeError, ValueError):
        doc["revision"] = 0
    doc.setdefault("v", 1)
    return doc


class RobotStore:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._doc_locks: Dict[str, threading.Lock] = {}

    def _doc_lock(self, repo_id: str) -> threading.Lock:
        with self._guard:
            return self._doc_locks.setdefault(repo_id, threading.Lock())

    def _load(self, repo_id: str) -> Tuple[Path, Dict[str, Any]]:
        path = _robots_path(repo_id)
        return path, _normalize_robots_doc(read_json(path))

    @staticmethod
    def _parse(repo_id: str, robot_id: str, raw: Any) -> Optional[RepoRobot]:
        if not isinstance(raw, dict):
            return None
        try:
            robot = RepoRobot.model_validate({**raw, "id": robot_id, "repoId": repo_id})
        except ValueError:
            logger.warning("skipping unreadable robot %s in repo %s", robot_id, repo_id)
            return None
        return robot

    def _robots(self, repo_id: str, doc: Dict[str, Any]) -> List[RepoRobot]:
        out: List[RepoRobot] = []
        for rid, raw in doc["robots"].items():
            robot = self._parse(repo_id, str(rid), raw)
            if robot is not None:
                out.append(robot)
        out.sort(key=lambda r: (r.created_at, r.name.casefold(), r.id))
        return out

    def revision(self, repo_id: str) -> int:
        _, doc = self._load(repo_id)
        return int(doc["revision"])

    def list_by_repo(self, repo_id: str) -> List[RepoRobot]:
        _, doc = self._load(repo_id)
        return self._robots(repo_id, doc)

    def get(self, repo_id: str, robot_id: str) -> Optional[RepoRobot]:
        _, doc = self._load(repo_id)
        return self._parse(repo_id, robot_id, doc["robots"].get(robot_id))

    def find(self, robot_id: str) -> Optional[RepoRobot]:
        """Look a robot up across all repositories."""
        root = ensure_home() / "repos"
        if not root.is_dir():
            return None
        for child in sorted(root.iterdir()):
            if not child.is_dir():
                continue
            robot = self.get(child.name, robot_id)
            if robot is not None:
                return robot
        return None

    def update(
        self,
        repo_id: str,
        robot_id: str,
        change: Callable[[Optional[RepoRobot]], RepoRobot],
        *,
        expected_revision: Optional[int] = None,
    ) -> Tuple[RepoRobot, int]:
        """Read-modify-write one robot under the document lock.

        ``change`` receives the freshly loaded robot (or None) and returns the robot
        to persist. A default robot unsets other defaults of its permission in the
        same write.
        """
        with self._doc_lock(repo_id):
            path, doc = self._load(repo_id)
            current = int(doc["revision"])
            if expected_revision is not None and int(expected_revision) != current:
                raise DefaultRobotConflictError(
                    f"robots revision mismatch (expected {int(expected_revision)}, got {current})"
                )
            robot = change(self._parse(repo_id, robot_id, doc["robots"].get(robot_id)))
            if robot.id != robot_id or robot.repo_id != repo_id:
                raise ValueError(f"robot {robot.id} cannot replace {robot_id} in repo {repo_id}")
            robots: Dict[str, Any] = dict(doc["robots"])
            now = robot.updated_at
            if robot.is_default:
                for other in self._robots(repo_id, doc):
                    if other.id != robot.id and other.is_default and other.permission == robot.permission:
                        robots[other.id] = other.model_copy(update={"is_default": False, "updated_at": now}).model_dump(
                            by_alias=True, exclude_none=True
                        )
            robots[robot.id] = robot.model_dump(by_alias=True, exclude_none=True)
            doc["robots"] = robots
            doc["revision"] = current + 1
            doc["updated_at"] = utc_now_iso()
            atomic_write_json(path, doc, indent=2)
            return robot, current + 1

    def delete(self, repo_id: str, robot_id: str) -> bool:
        with self._doc_lock(repo_id):
            path, doc = self._load(repo_id)
            if robot_id not in doc["robots"]:
                return False
            robots = dict(doc["robots"])
            robots.pop(robot_id, None)
            doc["robots"] = robots
            doc["revision"] = int(doc["revision"]) + 1
            doc["updated_at"] = utc_now_iso()
            atomic_write_json(path, doc, indent=2)
            return True


class DefaultRobotRegistry:
    def __init__(self, store: Optional[RobotStore] = None) -> None:
        self.store = store or RobotStore()
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}

    def _key_lock(self, repo_id: str, permission: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault((repo_id, permission), threading.Lock())

    def _require(self, repo_id: str, robot_id: str) -> RepoRobot:
        robot = self.store.get(repo_id, robot_id)
        if robot is not None:
            return robot
        if self.store.find(robot_id) is not None:
            raise RobotRepoMismatchError(f"robot {robot_id} does not belong to repo {repo_id}")
        raise RobotNotFoundError(f"robot not found: {robot_id}")

    def get_default(self, repo_id: str, permission: str) -> Optional[RepoRobot]:
        for robot in self.store.list_by_repo(repo_id):
            if robot.is_default and robot.permission == permission:
                return robot
        return None

    def _check_invariant(self, repo_id: str, permission: str, robot_id: str) -> None:
        defaults = [r.id for r in self.store.list_by_repo(repo_id) if r.is_default and r.permission == permission]
        if defaults != [robot_id]:
            logger.error(
                "default robot invariant violated repo=%s permission=%s defaults=%s", repo_id, permission, defaults
            )
            raise DefaultRobotInvariantError(
                f"expected exactly one default {permission} robot ({robot_id}) in repo {repo_id}, found {defaults}"
            )

    def set_default(self, repo_id: str, robot_id: str, *, expected_revision: Optional[int] = None) -> RepoRobot:
        permission = self._require(repo_id, robot_id).permission

        def promote(current: Optional[RepoRobot]) -> RepoRobot:
            if current is None:
                raise RobotNotFoundError(f"robot not found: {robot_id}")
            if current.permission != permission:
                raise DefaultRobotConflictError(f"robot {robot_id} permission changed concurrently")
            return current.model_copy(update={"is_default": True, "updated_at": utc_now_iso()})

        with self._key_lock(repo_id, permission):
            updated, _ = self.store.update(repo_id, robot_id, promote, expected_revision=expected_revision)
            self._check_invariant(repo_id, permission, robot_id)
        logger.info("default %s robot for repo %s is now %s", permission, repo_id, robot_id)
        return updated

    @staticmethod
    def _patch_of(raw: Dict[str, Any]) -> Dict[str, Any]:
        patch: Dict[str, Any] = {}
        for key, value in raw.items():
            alias = _ROBOT_ALIASES.get(key, key)
            if alias in ("id", "repoId", "createdAt", "updatedAt"):
                continue
            patch[alias] = value
        if "timeWindow" in patch:
            window_raw = patch["timeWindow"]
            window = normalize_time_window(window_raw)
            if window_raw is not None and window is None:
                raise ValueError("timeWindow must include startHour/endHour between 0 and 23")
            patch["timeWindow"] = window.model_dump(by_alias=True) if window else None
        return patch

    def upsert(self, repo_id: str, raw: Dict[str, Any], *, expected_revision: Optional[int] = None) -> RepoRobot:
        """Create or update a robot from a loosely typed payload.

        The payload is merged over the robot as stored at write time, so fields the
        payload leaves out (``isDefault`` included) keep their latest value.
        """
        if not isinstance(raw, dict):
            raise ValueError("robot must be an object")
        robot_id = str(raw.get("id") or "").strip() or _new_robot_id()
        patch = self._patch_of(raw)
        hint = self.store.get(repo_id, robot_id)
        permission = str(patch.get("permission") or (hint.permission if hint else "read"))

        def merge(existing: Optional[RepoRobot]) -> RepoRobot:
            base: Dict[str, Any] = existing.model_dump(by_alias=True, exclude_none=True) if existing else {}
            now = utc_now_iso()
            merged: Dict[str, Any] = {**base, **patch, "id": robot_id, "repoId": repo_id, "updatedAt": now}
            merged.setdefault("createdAt", now)
            robot = RepoRobot.model_validate(merged)
            if robot.permission != permission:
                raise DefaultRobotConflictError(f"robot {robot_id} permission changed concurrently")
            return robot

        with self._key_lock(repo_id, permission):
            saved, _ = self.store.update(repo_id, robot_id, merge, expected_revision=expected_revision)
            if saved.is_default:
                self._check_invariant(repo_id, saved.permission, saved.id)
        return saved

    def delete(self, repo_id: str, robot_id: str) -> bool:
        robot = self.store.get(repo_id, robot_id)
        if robot is None:
            return False
        with self._key_lock(repo_id, robot.permission):
            return self.store.delete(repo_id, robot_id)


ROBOTS = DefaultRobotRegistry()
