import logging
import os

from src.fleet_journal.logging_config import (
    SYNC_LOGGERS,
    build_logging_config,
    setup_logging,
)


def test_sync_loggers_also_write_sync_log(tmp_path):
    config = build_logging_config(str(tmp_path), "DEBUG")

    for name in SYNC_LOGGERS:
        assert "sync_file" in config["loggers"][name]["handlers"]
    assert "sync_file" not in config["loggers"]["src.fleet_journal"]["handlers"]
    assert config["handlers"]["sync_file"]["filename"] == os.path.join(
        str(tmp_path), "sync.log"
    )
    assert config["handlers"]["console"]["level"] == "DEBUG"


def test_setup_logging_creates_log_dir(tmp_path, monkeypatch):
    from src.fleet_journal.config import get_settings

    log_dir = tmp_path / "journal-logs"
    monkeypatch.setenv("LOG_DIR", str(log_dir))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()

    setup_logging()

    assert log_dir.is_dir()
    assert logging.getLogger("src.fleet_journal").level == logging.WARNING
