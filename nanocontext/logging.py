"""structlog setup for nanocontext: stdlib backend, secret redaction, per-workspace context."""

from __future__ import annotations

import json
import logging
import re
import sys
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any

import structlog

PACKAGE_LOGGER = "nanocontext"

# litellm logs request bodies at INFO, which would include conversation text
_QUIET_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy")

# Provider keys that may show up in error strings returned by model backends
_SECRET_PATTERNS = [
    re.compile(r"sk-ant-[A-Za-z0-9_-]{10,}"),        # Anthropic
    re.compile(r"sk-[A-Za-z0-9_-]{10,}"),            # OpenAI style
    re.compile(r"Bearer\s+[A-Za-z0-9_\-.]{10,}"),    # Authorization headers
    re.compile(r"AIza[A-Za-z0-9_-]{10,}"),           # Gemini
    re.compile(r"gsk_[A-Za-z0-9]{10,}"),             # Groq
]


def mask_secret(value: str) -> str:
    """Mask a secret value, keeping first 4 and last 4 chars visible.

    >>> mask_secret("sk-abc123456789xyz")
    'sk-a****9xyz'
    """
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}****{value[-4:]}"


def redact_text(value: str) -> str:
    """Replace any secret-looking substrings in *value*."""
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(lambda m: mask_secret(m.group(0)), value)
    return value


def _redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return {k: _redact_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(v) for v in value)
    return value


def _redact_event(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Processor: redact secrets in every value, including nested containers (e.g. trace dicts)."""
    return {key: _redact_value(val) for key, val in event_dict.items()}


def _renderer(json_output: bool) -> Any:
    if json_output:
        return structlog.processors.JSONRenderer(
            serializer=lambda obj, **kw: json.dumps(obj, ensure_ascii=False, default=str, **kw)
        )
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(json_output: bool = True, level: str = "INFO") -> None:
    """Route nanocontext events through stdlib logging to stderr.

    Args:
        json_output: If True, output JSON lines; otherwise human-readable console output.
        level: Level for the ``nanocontext`` logger hierarchy. Unknown names mean INFO.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _redact_event,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(json_output),
        ],
    ))

    package = logging.getLogger(PACKAGE_LOGGER)
    package.handlers.clear()
    package.addHandler(handler)
    package.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_workspace(workspace: Path | str) -> AbstractContextManager[Any]:
    """Tag every event logged inside the ``with`` block with the workspace it concerns."""
    return structlog.contextvars.bound_contextvars(workspace=str(workspace))


def get_logger(name: str = PACKAGE_LOGGER) -> structlog.stdlib.BoundLogger:
    """Return a structlog bound logger for the given name."""
    return structlog.get_logger(name)
