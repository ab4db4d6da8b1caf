# QueryGate - Audit logging (one entry per ask; never the question or record contents)
import copy
import json
import logging
import logging.handlers
import queue
from collections import deque
from pathlib import Path

from .models import AuditLogEntry

AUDIT_LOGGER_NAME = "querygate.audit"
AUDIT_MEMORY_SIZE = 1000
SENSITIVE_KEYS = frozenset({
    "password", "password_hash", "token", "access_token", "secret", "secret_key",
    "email", "phone_number", "gst_number", "pan_number",
})

AUDIT_LOG_MEMORY: deque[dict] = deque(maxlen=AUDIT_MEMORY_SIZE)


def sanitize_for_log(data: dict) -> dict:
    sanitized = copy.deepcopy(data)

    def _scrub(obj):
        if isinstance(obj, dict):
            for key in list(obj.keys()):
                if isinstance(key, str) and key.lower() in SENSITIVE_KEYS:
                    obj[key] = "[REDACTED]"
                else:
                    _scrub(obj[key])
        elif isinstance(obj, list):
            for item in obj:
                _scrub(item)

    _scrub(sanitized)
    return sanitized


class AuditFileHandler(logging.Handler):
    def __init__(self, filepath: Path):
        super().__init__()
        self.filepath = Path(filepath)
        self.filepath.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record):
        try:
            entry = getattr(record, "audit_entry", None)
            if entry:
                with open(self.filepath, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, default=str) + "\n")
        except Exception:
            self.handleError(record)


class AuditMemoryHandler(logging.Handler):
    def emit(self, record):
        try:
            entry = getattr(record, "audit_entry", None)
            if entry:
                AUDIT_LOG_MEMORY.append(entry)
        except Exception:
            self.handleError(record)


_audit_queue: queue.Queue = queue.Queue(-1)
_audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
_audit_logger.setLevel(logging.INFO)
_audit_logger.propagate = False
_audit_logger.addHandler(logging.handlers.QueueHandler(_audit_queue))

_queue_listener: logging.handlers.QueueListener | None = None


def start_audit_logger(path: str | Path) -> None:
    """Start the queue listener fanning out to the JSONL file and the in-memory sample."""
    global _queue_listener
    if _queue_listener is not None:
        return
    _queue_listener = logging.handlers.QueueListener(
        _audit_queue, AuditFileHandler(Path(path)), AuditMemoryHandler(), respect_handler_level=True,
    )
    _queue_listener.start()
    logging.getLogger(__name__).info("Audit logger ready (QueueHandler -> %s)", path)


def shutdown_audit_logger() -> None:
    """Flush pending entries and stop the listener."""
    global _queue_listener
    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None


def log_audit(entry: AuditLogEntry) -> dict:
    payload = sanitize_for_log(entry.model_dump(mode="json"))
    _audit_logger.info("audit", extra={"audit_entry": payload})
    return payload


def get_audit_sample(limit: int = 50, tenant_id: str | None = None) -> list[dict]:
    """Most recent audit entries, oldest first. With tenant_id, only that tenant's entries."""
    if limit <= 0:
        return []
    entries = list(AUDIT_LOG_MEMORY)
    if tenant_id is not None:
        entries = [e for e in entries if e.get("tenant_id") == tenant_id]
    return entries[-limit:]
