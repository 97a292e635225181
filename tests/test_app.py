"""Tests for the bootstrap helpers."""

import json
import logging

import pytest
import structlog

from vcgot.app import build_service, configure_logging, load_config
from vcgot.core.config import VcGotConfig
from vcgot.core.events import EventBus
from vcgot.exceptions import ConfigError
from vcgot.got.service import GotService


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestBuildService:
    def test_returns_service(self, config):
        service = build_service(config)
        assert isinstance(service, GotService)
        assert service.invoker.program == "got"

    def test_shared_event_bus(self, config):
        bus = EventBus()
        service = build_service(config, event_bus=bus)
        assert service._event_bus is bus
        assert service.invoker._event_bus is bus


@pytest.mark.usefixtures("restore_logging")
class TestConfigureLogging:
    def test_console_only_by_default(self):
        configure_logging(VcGotConfig(log_level="warning"))
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1

    def test_file_handler_writes_json(self, tmp_path):
        log_dir = tmp_path / "logs"
        configure_logging(VcGotConfig(log_dir=log_dir, log_level="DEBUG"))
        assert len(logging.getLogger().handlers) == 2

        structlog.get_logger("vcgot.test").info("sample_event", operation="status")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = (log_dir / "vcgot.log").read_text().splitlines()
        record = json.loads(lines[-1])
        assert record["event"] == "sample_event"
        assert record["operation"] == "status"
        assert record["level"] == "info"


class TestLoadConfig:
    def test_valid(self, monkeypatch):
        monkeypatch.setenv("VCGOT_PROGRAM", "got-portable")
        assert load_config().program == "got-portable"

    def test_invalid_raises_config_error(self, monkeypatch):
        monkeypatch.setenv("VCGOT_COMMAND_TIMEOUT", "-1")
        with pytest.raises(ConfigError, match="command_timeout"):
            load_config()
