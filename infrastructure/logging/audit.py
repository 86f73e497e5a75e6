import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from app.utils.time import iso_now

AUDIT_LOGGER_NAME = "greenhouse.audit"


class WindowsSafeRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that tolerates a locked log file during rollover."""

    def doRollover(self):
        if self.stream:
            self.stream.close()
            self.stream = None
        try:
            super().doRollover()
        except PermissionError:
            # File still held by another process; keep appending to the current one
            pass
        finally:
            if not self.stream:
                self.stream = self._open()


def _rotating_handler(path: Path, max_bytes: int, backup_count: int) -> RotatingFileHandler:
    handler_cls = WindowsSafeRotatingFileHandler if sys.platform == "win32" else RotatingFileHandler
    handler = handler_cls(
        filename=str(path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
        delay=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


class AuditLogger:
    """Append-only JSON-lines trail of every dispatch attempt.

    Written next to the ``AuditLog`` table so the trail survives a database
    outage. Each line is one object::

        {"ts": "...", "actor": "7", "action": "rpc_sent",
         "resource": "farm/gh1", "outcome": "success", "meta": {...}}

    One file handler is attached per log path; building a second logger for
    another path (tests, a second app) swaps the handler instead of writing
    to the first file.
    """

    def __init__(
        self,
        log_path: str,
        level: str = "INFO",
        *,
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 30,
    ) -> None:
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger(AUDIT_LOGGER_NAME)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        self.logger.propagate = False
        self._attach(max_bytes, backup_count)

    def _attach(self, max_bytes: int, backup_count: int) -> None:
        target = os.path.abspath(self.log_path)
        for handler in list(self.logger.handlers):
            if not isinstance(handler, RotatingFileHandler):
                continue
            if handler.baseFilename == target:
                return
            self.logger.removeHandler(handler)
            handler.close()
        self.logger.addHandler(_rotating_handler(self.log_path, max_bytes, backup_count))

    def log_event(
        self,
        actor: str,
        action: str,
        resource: str,
        outcome: str,
        **metadata: Any,
    ) -> None:
        payload: Dict[str, Any] = {
            "ts": iso_now(timespec="milliseconds"),
            "actor": actor,
            "action": action,
            "resource": resource,
            "outcome": outcome,
        }
        if metadata:
            payload["meta"] = metadata
        self.logger.info(json.dumps(payload, default=str))

    def close(self) -> None:
        for handler in list(self.logger.handlers):
            if isinstance(handler, RotatingFileHandler) and handler.baseFilename == os.path.abspath(self.log_path):
                self.logger.removeHandler(handler)
                handler.close()


def read_audit_lines(log_path: str, limit: Optional[int] = None) -> list[Dict[str, Any]]:
    """Parse the current audit file (not the rotated backups), newest last."""
    path = Path(log_path)
    if not path.exists():
        return []
    entries = []
    with path.open(encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except ValueError:
                continue
    return entries[-limit:] if limit else entries
