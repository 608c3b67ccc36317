"""Structured audit events (JSON lines) on a dedicated logger."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_FIELD_ORDER = (
    "command",
    "args",
    "timeout",
    "exit_code",
    "execution_time",
    "outcome",
    "violation",
    "error",
    "method",
    "path",
    "remote_addr",
    "status",
    "latency",
)


class AuditLogger:
    """Emit one JSON object per event; level filtering is the logger's job."""

    def __init__(self, logger: Optional[logging.Logger] = None, *, mode: str = "daemon"):
        self.logger = logger or logging.getLogger("audit")
        self.mode = str(mode)

    def emit(self, event: str, level: int = logging.INFO, **fields) -> None:
        if not self.logger.isEnabledFor(level):
            return
        entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "level": logging.getLevelName(level).lower(),
            "mode": self.mode,
            "event": event,
        }
        for key in _FIELD_ORDER:
            value = fields.get(key)
            if value is None or value == "" or value == []:
                continue
            entry[key] = value
        self.logger.log(level, json.dumps(entry, ensure_ascii=False))


def setup_audit_logger(config: dict, *, mode: str) -> AuditLogger:
    """Attach a plain-message handler to the ``audit`` logger.

    ``logging.audit.file`` selects a file; without it events go to stdout.
    """
    audit_conf = config.get("logging", {}).get("audit", {}) or {}
    level_name = str(audit_conf.get("level", config.get("logging", {}).get("level", "INFO"))).upper()

    logger = logging.getLogger("audit")
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    logger.propagate = False
    logger.handlers.clear()
    audit_file = audit_conf.get("file")
    if audit_file:
        Path(audit_file).parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(audit_file)
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return AuditLogger(logger, mode=mode)
