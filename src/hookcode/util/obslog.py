from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

_HANDLER_MARK = "_hookcode_jsonl"


class JsonLineFormatter(logging.Formatter):
    def __init__(self, component: str) -> None:
        super().__init__()
        self.component = component

    def format(self, record: logging.LogRecord) -> str:
        doc: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "component": self.component,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            doc["exc"] = self.formatException(record.exc_info)
        return json.dumps(doc, ensure_ascii=False)


def setup_root_json_logging(*, component: str, level: str = "INFO", force: bool = False) -> None:
    """Attach a JSON-lines stderr handler to the root logger (once unless force)."""
    root = logging.getLogger()
    existing = [h for h in root.handlers if getattr(h, _HANDLER_MARK, False)]
    if existing and not force:
        return
    for h in existing:
        root.removeHandler(h)
    handler = logging.StreamHandler(sys.stderr)
    setattr(handler, _HANDLER_MARK, True)
    handler.setFormatter(JsonLineFormatter(component))
    root.addHandler(handler)
    root.setLevel(getattr(logging, str(level or "INFO").strip().upper(), logging.INFO))
