"""Bootstrap: wires configuration, logging, events and the got service together."""

from __future__ import annotations

import logging
import logging.handlers

import structlog
from pydantic import ValidationError

from vcgot.core.config import VcGotConfig
from vcgot.core.events import EventBus, log_event
from vcgot.exceptions import ConfigError
from vcgot.got.invoker import CommandInvoker
from vcgot.got.service import GotService

logger = structlog.get_logger()


def load_config() -> VcGotConfig:
    """Read settings from the environment and ``.env``."""
    try:
        return VcGotConfig()
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def configure_logging(config: VcGotConfig) -> None:
    """Set up structlog with console output and optional rotating JSON file handler."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(config.log_level)
    root_logger.handlers.clear()

    # Console handler on stderr so command output on stdout stays clean
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(),
        )
    )
    root_logger.addHandler(console_handler)

    # File handler: JSON lines for machine parsing
    if config.log_dir is not None:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.log_dir / "vcgot.log",
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
            )
        )
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_service(
    config: VcGotConfig, *, event_bus: EventBus | None = None
) -> GotService:
    """Create a GotService sharing one event bus with its invoker.

    A bus created here logs every got event at debug level.
    """
    if event_bus is None:
        event_bus = EventBus()
        event_bus.subscribe_all(log_event)
    invoker = CommandInvoker(config, event_bus)
    service = GotService(config, invoker=invoker, event_bus=event_bus)
    logger.debug("service_built", program=config.program)
    return service
