# logging_config.py

import logging
import logging.config
import os

from src.fleet_journal.config import get_settings

# Loggers of the sync pipeline that also write to the sync log
SYNC_LOGGERS = (
    "src.fleet_journal.sync",
    "src.fleet_journal.ingestion",
    "src.fleet_journal.gps_provider",
)


def build_logging_config(log_dir: str, level: str = "INFO") -> dict:
    def file_handler(name: str, handler_level: str) -> dict:
        return {
            "level": handler_level,
            "class": "logging.FileHandler",
            "filename": os.path.join(log_dir, name),
            "formatter": "verbose",
        }

    app_handlers = ["console", "file", "error_file"]
    loggers = {
        "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "src.fleet_journal": {
            "level": level,
            "handlers": app_handlers,
            "propagate": False,
        },
    }
    for name in SYNC_LOGGERS:
        loggers[name] = {
            "level": level,
            "handlers": app_handlers + ["sync_file"],
            "propagate": False,
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
            "verbose": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - "
                "%(message)s [%(filename)s:%(lineno)s]",
            },
        },
        "handlers": {
            "console": {
                "level": level,
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
            "file": file_handler("journal.log", "DEBUG"),
            "error_file": file_handler("error.log", "ERROR"),
            "sync_file": file_handler("sync.log", "INFO"),
        },
        "loggers": loggers,
        "root": {"level": "WARNING", "handlers": ["console"]},
    }


def setup_logging():
    settings = get_settings()
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    logging.config.dictConfig(
        build_logging_config(settings.LOG_DIR, settings.LOG_LEVEL)
    )
