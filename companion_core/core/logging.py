"""Logging configuration."""

import logging
import sys
from typing import Optional

import structlog


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Setup structured logging."""

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard logging
    logging.basicConfig(
        format="%(message)s" if json_format else "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper())
    )

    # Third-party clients are chatty at INFO
    for noisy in ("httpx", "httpcore", "openai", "anthropic", "asyncpg"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Structured logger bound to ``name``."""
    return structlog.get_logger(name)


class ServiceLogger:
    """Structured logger with service context for the service layer"""

    def __init__(self, name: str, service_name: str):
        self.name = name
        self.service_name = service_name

    @property
    def logger(self):
        # Текущая конфигурация structlog на момент вызова
        return structlog.get_logger(self.name).bind(service=self.service_name)

    def log_service_call(self, method: str, user_id: Optional[str] = None, **kwargs):
        self.logger.info("service_call", method=method, user_id=user_id, **kwargs)

    def log_service_result(self, method: str, success: bool = True,
                           processing_time: Optional[float] = None, **kwargs):
        log = self.logger.info if success else self.logger.error
        log("service_result", method=method, success=success, processing_time=processing_time, **kwargs)

    def log_error(self, error_code: str, message: str, user_id: Optional[str] = None,
                  exception: Optional[BaseException] = None, **kwargs):
        self.logger.error(
            "service_error", error_code=error_code, error=message, user_id=user_id,
            exc_info=exception, **kwargs
        )

    def log_user_action(self, action: str, user_id: str, **kwargs):
        self.logger.info("user_action", action=action, user_id=user_id, **kwargs)

    def __getattr__(self, item):
        # debug / info / warning / error прямо из structlog
        return getattr(self.logger, item)


class LoggerMixin:
    """Mixin to add logging capabilities to service classes"""

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        service_name = cls.__name__.lower().replace('service', '').replace('handler', '')
        cls._logger = ServiceLogger(cls.__module__, service_name)

    @property
    def logger(self) -> ServiceLogger:
        return self._logger
