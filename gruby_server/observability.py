from __future__ import annotations

import logging
import sys
from typing import Any, Mapping, MutableMapping, Optional

import sentry_sdk
import structlog
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from .config import Settings

_LOGGING_CONFIGURED = False
_SENTRY_CONFIGURED = False

# Credentials that reach request headers or Kroger OAuth payloads.
SENSITIVE_KEYS = frozenset(
    {"authorization", "client_secret", "access_token", "sync_api_secret", "cron_secret", "x-vercel-cron"}
)
REDACTED = "[redacted]"

# Chatty dependency loggers kept at WARNING unless the service runs more quietly.
QUIET_LOGGERS = ("httpx", "httpcore", "limits", "sqlalchemy.engine")


class ServiceFields:
    """structlog processor stamping every event with the service and environment."""

    def __init__(self, service: str, environment: str) -> None:
        self.service = service
        self.environment = environment

    def __call__(self, logger: Any, method_name: str, event_dict: MutableMapping[str, Any]):
        event_dict.setdefault("service", self.service)
        event_dict.setdefault("env", self.environment)
        return event_dict


def configure_logging(settings: Settings) -> None:
    """Route stdlib and structlog records through one renderer, JSON in deployed environments."""
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
    service_fields = ServiceFields(settings.app_name, settings.environment)

    if settings.log_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
            foreign_pre_chain=[
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.ExtraAdder(),
                service_fields,
                timestamper,
                structlog.processors.format_exc_info,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            service_fields,
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
        uvicorn_logger.setLevel(log_level)
    for logger_name in QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))

    _LOGGING_CONFIGURED = True


def scrub_sensitive(data: Any) -> Any:
    """Copy of `data` with credential values replaced, recursing into dicts and lists."""
    if isinstance(data, Mapping):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else scrub_sensitive(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [scrub_sensitive(item) for item in data]
    return data


def _before_send(event: dict, hint: dict) -> Optional[dict]:
    request = event.get("request")
    if isinstance(request, dict):
        for section in ("headers", "data", "cookies"):
            if section in request:
                request[section] = scrub_sensitive(request[section])
    if "extra" in event:
        event["extra"] = scrub_sensitive(event["extra"])
    return event


def init_sentry(settings: Settings) -> None:
    global _SENTRY_CONFIGURED
    if _SENTRY_CONFIGURED or not settings.sentry_dsn:
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        server_name=settings.app_name,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        send_default_pii=False,
        before_send=_before_send,
    )
    _SENTRY_CONFIGURED = True
