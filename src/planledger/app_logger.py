# src/planledger/app_logger.py
import logging
import logging.config
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(process)d %(module)s"
_DEFAULT_LEVEL = os.getenv("PLANLEDGER_LOG_LEVEL", "INFO").upper()

ROOT_LOGGER = "planledger"
AUDIT_LOGGER = "planledger.audit"


def build_logging_config(level: str = _DEFAULT_LEVEL, json_logs: bool = False) -> dict:
    """dictConfig for the service; JSON lines go through python-json-logger."""
    formatter = "json" if json_logs else "plain"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {"format": LOG_FORMAT},
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "fmt": JSON_FORMAT,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            ROOT_LOGGER: {"handlers": ["console"], "level": level, "propagate": False},
            "uvicorn": {"handlers": ["console"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"handlers": ["console"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["console"], "level": "INFO", "propagate": False},
        },
    }


def setup_logging(level: str | None = None, json_logs: bool = False) -> logging.Logger:
    lvl = (level or _DEFAULT_LEVEL).upper()
    if not hasattr(logging, lvl):
        lvl = "INFO"
    logging.config.dictConfig(build_logging_config(lvl, json_logs))
    return logging.getLogger(ROOT_LOGGER)


def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger(ROOT_LOGGER)
    if not name:
        return base
    # accept dotted module paths like "planledger.services.version_store"
    if name == ROOT_LOGGER:
        return base
    if name.startswith(ROOT_LOGGER + "."):
        name = name[len(ROOT_LOGGER) + 1:]
    return base.getChild(name)


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER)
