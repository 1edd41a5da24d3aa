import contextvars
import json
import logging
import logging.config
import os
import threading
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

import yaml

from .config import LOG_FORMAT, LOG_LEVEL, LOG_MEMORY_MAX

# Context variable for the job being reported on
job_id_var = contextvars.ContextVar('job_id', default=None)

_RESERVED = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename', 'module',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info', 'exc_text', 'stack_info',
    'taskName', 'message', 'job_id', 'component', 'operation', 'status', 'latency_ms',
}


def get_job_id() -> Optional[str]:
    """Get the current job ID from context"""
    return job_id_var.get()


@contextmanager
def job_context(job_id: Optional[str]):
    """Stamp log records emitted inside the block with job_id"""
    token = job_id_var.set(job_id)
    try:
        yield
    finally:
        job_id_var.reset(token)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """JSON formatter with structured fields"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": _utc_now_iso(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "job_id": getattr(record, 'job_id', None) or get_job_id(),
            "operation": getattr(record, 'operation', None),
            "status": getattr(record, 'status', None),
            "latency_ms": getattr(record, 'latency_ms', None),
            "component": getattr(record, 'component', 'engine'),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED and key not in log_entry:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class MemoryLogHandler(logging.Handler):
    """In-memory log handler with ring buffer for live logs"""

    def __init__(self, max_size: int = LOG_MEMORY_MAX):
        super().__init__()
        self.max_size = max_size
        self.logs = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def emit(self, record: logging.LogRecord):
        try:
            msg = self.format(record)

            if isinstance(self.formatter, JsonFormatter):
                try:
                    log_entry = json.loads(msg)
                except json.JSONDecodeError:
                    log_entry = {"msg": msg, "timestamp": _utc_now_iso()}
            else:
                log_entry = {
                    "msg": msg,
                    "timestamp": _utc_now_iso(),
                    "level": record.levelname,
                    "logger": record.name,
                    "job_id": getattr(record, 'job_id', None) or get_job_id(),
                }

            with self._lock:
                self.logs.append(log_entry)

        except Exception:
            self.handleError(record)

    def get_logs(self, job_id: Optional[str] = None, limit: int = 1000) -> list:
        """Get logs from memory buffer, optionally for one job"""
        with self._lock:
            logs = list(self.logs)

        if job_id:
            logs = [log for log in logs if log.get('job_id') == job_id]

        return logs[-limit:] if limit else logs


# Global memory handler instance
memory_handler = MemoryLogHandler()


def _default_config(log_level: str, log_format: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "text": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": log_format,
                "stream": "ext://sys.stdout"
            }
        },
        "loggers": {
            "syncwatch": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False
            }
        },
        "root": {
            "level": log_level,
            "handlers": ["console"]
        }
    }


def setup_logging(config_path: str = "LOGGING.yaml"):
    """Setup logging configuration from YAML file or environment"""
    log_format = os.getenv("LOG_FORMAT", LOG_FORMAT)
    log_level = os.getenv("LOG_LEVEL", LOG_LEVEL)

    config = None
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logging.getLogger("syncwatch").warning("Could not load %s: %s", config_path, e)

    if not config:
        config = _default_config(log_level, log_format)

    # Apply environment overrides
    if log_format == "text":
        for handler in config.get("handlers", {}).values():
            if "formatter" in handler:
                handler["formatter"] = "text"

    engine_cfg = config.setdefault("loggers", {}).get("syncwatch")
    if engine_cfg is not None:
        engine_cfg["level"] = log_level

    logging.config.dictConfig(config)

    formatter = JsonFormatter() if log_format == "json" else logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    memory_handler.setFormatter(formatter)

    engine_logger = logging.getLogger("syncwatch")
    engine_logger.handlers = [h for h in engine_logger.handlers if not isinstance(h, MemoryLogHandler)]
    engine_logger.addHandler(memory_handler)

    return config


def get_memory_handler():
    """Get the singleton memory handler instance"""
    return memory_handler
