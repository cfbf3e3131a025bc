# logging_setup.py
from __future__ import annotations

import logging
import logging.config
from typing import Any

LOGGER_NAME = "cc_export"


class DefaultContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "course_id"):
            record.course_id = "-"
        if not hasattr(record, "stage"):
            record.stage = "-"
        return True


def setup_logging(verbosity: int = 1) -> None:
    """
    Configure the export logger.
    - WARNING at 0, INFO at 1, DEBUG when verbosity >= 2
    - Every line carries course_id and stage so runs are grep-able.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    fmt = (
        "%(asctime)s %(levelname)s "
        "course=%(course_id)s stage=%(stage)s "
        "%(message)s"
    )

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"std": {"format": fmt}},
        "filters": {
            "default_context": {
                "()": "logging_setup.DefaultContextFilter"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "std",
                "level": level,
                "filters": ["default_context"],
            }
        },
        "loggers": {
            LOGGER_NAME: {"handlers": ["console"], "level": level, "propagate": False}
        },
    })


class _Adapter(logging.LoggerAdapter):
    """Binds course_id + stage, merges caller extras without colliding with LogRecord attributes."""

    _RESERVED = {
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module", "lineno",
        "funcName", "created", "asctime", "msecs", "relativeCreated", "thread", "threadName",
        "processName", "process", "exc_info", "exc_text", "stack_info", "stacklevel", "message",
    }

    def process(self, msg: str, kwargs: Any):
        extra = dict(self.extra)
        for k, v in (kwargs.get("extra") or {}).items():
            key = k if k not in self._RESERVED else f"meta_{k}"
            if key not in extra:  # don't clobber adapter defaults
                extra[key] = v
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(*, stage: str, course_id: Any) -> logging.LoggerAdapter:
    """
    Logger bound to a pipeline stage + course.
    Usage:
        log = get_logger(stage="manifest", course_id=42)
        log.info("wrote resources", extra={"count": 12})
    """
    base = logging.getLogger(LOGGER_NAME)
    return _Adapter(base, extra={"stage": stage, "course_id": course_id})
