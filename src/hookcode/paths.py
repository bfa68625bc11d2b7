from __future__ import annotations

import os
from pathlib import Path


def home_dir() -> Path:
    raw = str(os.environ.get("HOOKCODE_HOME") or "").strip()
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".hookcode"


def ensure_home() -> Path:
    home = home_dir()
    home.mkdir(parents=True, exist_ok=True)
    return home


def repo_dir(repo_id: str) -> Path:
    rid = str(repo_id or "").strip()
    if not rid or "/" in rid or "\\" in rid or ".." in rid:
        raise ValueError(f"invalid repo_id: {repo_id!r}")
    return ensure_home() / "repos" / rid
