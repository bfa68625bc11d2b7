from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict

import yaml

from ..paths import ensure_home
from ..util.conv import coerce_bool
from ..util.fs import atomic_write_text

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

DEFAULT_OBSERVABILITY: Dict[str, Any] = {
    "log_level": "INFO",
    "developer_mode": False,
}


def settings_path() -> Path:
    return ensure_home() / "settings.yaml"


def _load_settings_doc() -> Dict[str, Any]:
    path = settings_path()
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, yaml.YAMLError):
        return {}
    return raw if isinstance(raw, dict) else {}


def _normalize_observability(raw: Any) -> Dict[str, Any]:
    d = raw if isinstance(raw, dict) else {}
    level = str(d.get("log_level") or DEFAULT_OBSERVABILITY["log_level"]).strip().upper()
    if level not in _LOG_LEVELS:
        level = DEFAULT_OBSERVABILITY["log_level"]
    return {
        "log_level": level,
        "developer_mode": coerce_bool(d.get("developer_mode"), default=False),
    }


def get_observability_settings() -> Dict[str, Any]:
    return _normalize_observability(_load_settings_doc().get("observability"))


def update_observability_settings(patch: Dict[str, Any]) -> Dict[str, Any]:
    doc = _load_settings_doc()
    current = _normalize_observability(doc.get("observability"))
    merged = copy.deepcopy(current)
    if isinstance(patch, dict):
        merged.update({k: v for k, v in patch.items() if k in DEFAULT_OBSERVABILITY})
    obs = _normalize_observability(merged)
    doc["observability"] = obs
    atomic_write_text(settings_path(), yaml.safe_dump(doc, allow_unicode=True, sort_keys=False))
    return obs
