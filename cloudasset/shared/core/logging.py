from __future__ import annotations

import logging
import re
import sys
from typing import Any, cast

import structlog

from cloudasset.shared.core.config import Settings, get_settings

_SENSITIVE_FIELDS = {
    "password",
    "token",
    "secret",
    "authorization",
    "credentials",
    "client_secret",
    "secret_access_key",
    "session_token",
    "access_token",
    "private_key",
}
_SENSITIVE_SUFFIXES = ("_token", "_secret", "_password", "_key")


def _is_sensitive_key(key: Any) -> bool:
    key_norm = str(key).lower().strip().replace("-", "_")
    if key_norm in _SENSITIVE_FIELDS:
        return True
    if key_norm.endswith(_SENSITIVE_SUFFIXES):
        return True
    tokens = [t for t in re.split(r"[^a-z0-9]+", key_norm) if t]
    return any(t in _SENSITIVE_FIELDS for t in tokens)


def secret_redactor(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    Recursively mask credential material in log events.
    Provider configs carry static keys and client secrets; none of them may
    reach the log stream.
    """

    def redact_recursive(data: Any) -> Any:
        if isinstance(data, dict):
            return {
                k: ("[REDACTED]" if _is_sensitive_key(k) else redact_recursive(v))
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [redact_recursive(item) for item in data]
        return data

    redacted = redact_recursive(event_dict)
    if isinstance(redacted, dict):
        return cast(dict[str, Any], redacted)
    return {}


def setup_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()

    # 1. Common processors
    base_processors = [
        structlog.contextvars.merge_contextvars,  # Support async context
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        secret_redactor,
    ]

    # 2. Choose the renderer based on environment
    if settings.DEBUG:
        renderer: Any = structlog.dev.ConsoleRenderer()
        processors = base_processors + [renderer]
        min_level = logging.DEBUG
    else:
        renderer = structlog.processors.JSONRenderer()
        processors = base_processors + [structlog.processors.dict_tracebacks, renderer]
        min_level = logging.INFO

    # 3. Records go to stdout, so logs always go to stderr
    structlog.configure(
        processors=cast(Any, processors),
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # 4. Route SDK logging (botocore, azure, kubernetes) through stderr as well
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=min_level,
    )
    for noisy in ("botocore", "aiobotocore", "azure", "urllib3", "google"):
        logging.getLogger(noisy).setLevel(max(min_level, logging.WARNING))
