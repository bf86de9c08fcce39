import json
import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

AUDIT_LOGGER_NAME = "gardooner.audit"


class AuditLogger:
    """
    Append-only JSON-lines record of every task and care-log mutation.

    One audit file per process: building a second AuditLogger with another
    path moves the shared ``gardooner.audit`` logger to the new file.
    """

    def __init__(self, log_path: str, level: str = "INFO") -> None:
        self.log_path = Path(log_path).resolve()
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger(AUDIT_LOGGER_NAME)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        self.logger.propagate = False
        self._attach_handler()

    def _attach_handler(self) -> None:
        for handler in list(self.logger.handlers):
            if isinstance(handler, RotatingFileHandler):
                if Path(handler.baseFilename) == self.log_path:
                    return
                self.logger.removeHandler(handler)
                handler.close()

        handler = RotatingFileHandler(
            filename=str(self.log_path),
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=30,
            encoding="utf-8",
            delay=True,
        )
        formatter = logging.Formatter(fmt="%(asctime)sZ | %(message)s", datefmt="%Y-%m-%dT%H:%M:%S")
        formatter.converter = time.gmtime
        handler.setFormatter(formatter)
        self.logger.addHandler(handler)

    def log_event(self, actor: str, action: str, resource: str, outcome: str, **metadata: Any) -> None:
        """Record *actor* performing *action* on *resource* (e.g. ``garden:<id>``)."""
        payload: Dict[str, Any] = {
            "actor": actor,
            "action": action,
            "resource": resource,
            "outcome": outcome,
        }
        meta = {key: value for key, value in metadata.items() if value is not None}
        if meta:
            payload["meta"] = meta

        self.logger.info(json.dumps(payload, default=str, sort_keys=True))

    def close(self) -> None:
        for handler in list(self.logger.handlers):
            if isinstance(handler, RotatingFileHandler) and Path(handler.baseFilename) == self.log_path:
                self.logger.removeHandler(handler)
                handler.close()
