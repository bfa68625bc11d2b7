from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from .. import __version__
from ..contracts.v1 import DaemonError, DaemonRequest, DaemonResponse
from ..kernel.settings import get_observability_settings, update_observability_settings
from ..util.obslog import setup_root_json_logging
from ..util.time import utc_now_iso
from .request_dispatch_ops import RequestDispatchDeps, dispatch_request

logger = logging.getLogger("hookcode.daemon.server")

_REQUEST_DISPATCH_DEPS: Optional[RequestDispatchDeps] = None


def _error(code: str, message: str, *, details: Optional[Dict[str, Any]] = None) -> DaemonResponse:
    return DaemonResponse(ok=False, error=DaemonError(code=code, message=message, details=(details or {})))


def apply_observability_settings(obs: Dict[str, Any]) -> None:
    """Configure the root JSON-lines logger from observability settings."""
    level = str(obs.get("log_level") or "INFO").strip().upper() or "INFO"
    if obs.get("developer_mode") and level == "INFO":
        level = "DEBUG"
    setup_root_json_logging(component="daemon", level=level, force=True)


def _update_observability(patch: Dict[str, Any]) -> Dict[str, Any]:
    obs = update_observability_settings(patch)
    apply_observability_settings(obs)
    return obs


def _deps() -> RequestDispatchDeps:
    global _REQUEST_DISPATCH_DEPS
    if _REQUEST_DISPATCH_DEPS is None:
        _REQUEST_DISPATCH_DEPS = RequestDispatchDeps(
            version=__version__,
            now_iso=utc_now_iso,
            get_observability=get_observability_settings,
            update_observability=_update_observability,
        )
    return _REQUEST_DISPATCH_DEPS


def handle_request(req: DaemonRequest) -> Tuple[DaemonResponse, bool]:
    """Handle one request in-process. Returns (response, should_exit)."""
    try:
        resp = dispatch_request(req, deps=_deps(), error=_error)
    except ValueError as e:
        return _error("invalid_request", str(e)), False
    except Exception as e:
        logger.exception("daemon op failed: %s", req.op)
        return _error("internal_error", str(e)), False
    return resp, False


def call_daemon(op: str, args: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    resp, _ = handle_request(DaemonRequest(op=op, args=dict(args or {})))
    return resp.model_dump()
