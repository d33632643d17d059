# portable_fs/monitoring/logger.py
"""
Structured JSON logger for portable_fs.
"""
import logging
import json
from datetime import datetime, timezone

from portable_fs.config import settings
from portable_fs.monitoring.context import get_storage_context


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "component": getattr(record, "component", None) or record.module,
            "operation_id": getattr(record, "operation_id", None),
            "scope": getattr(record, "scope", None),
        }
        path = getattr(record, "path", None)
        if path is not None:
            log_record["path"] = str(path)
        return json.dumps(log_record)

logger = logging.getLogger("portable_fs")
logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
handler = logging.StreamHandler()
handler.setFormatter(JsonFormatter())
logger.handlers = [handler]

# Helper to log with context
def log(level: str, message: str, component: str = None, operation_id: str = None, scope: str = None, **kwargs):
    # 'module' is reserved on LogRecord
    if "module" in kwargs and not component:
        component = kwargs.pop("module")
    ctx = get_storage_context()
    if operation_id is None:
        operation_id = ctx.get("operation_id")
    if scope is None:
        scope = ctx.get("scope")

    extra = {
        "operation_id": operation_id,
        "scope": scope,
        "component": component,
        **kwargs
    }
    logger.log(getattr(logging, level.upper(), logging.INFO), message, extra=extra)
