"""Logging setup for the server process (stderr only; stdout belongs to stdio frames)."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Mapping

from zkpret_mcp.config import ServerConfig

STRUCTURED_FIELDS = ("tool", "request_id", "session_id", "outcome", "duration_ms", "error", "arguments")
SENSITIVE_MARKERS = ("private", "secret", "password", "mnemonic", "seed", "token", "apikey", "api_key")
REDACTED = "***"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "name": record.name,
        }
        for key in STRUCTURED_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def redact_arguments(arguments: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of ``arguments`` with secret-looking values masked, recursing into dicts."""
    redacted: Dict[str, Any] = {}
    for key, value in arguments.items():
        lowered = str(key).lower()
        if any(marker in lowered for marker in SENSITIVE_MARKERS):
            redacted[key] = REDACTED
        elif isinstance(value, Mapping):
            redacted[key] = redact_arguments(value)
        else:
            redacted[key] = value
    return redacted


def configure_logging(config: ServerConfig) -> None:
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stderr)
    if config.log_format.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logging.basicConfig(level=level, handlers=[handler], force=True)
