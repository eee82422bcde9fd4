"""Centralized logging configuration using Loguru with Pino-compatible output.

Every auditcore module logs through the single loguru logger configured here.
Human-readable output goes to stderr; NDJSON (Pino-compatible) output is used
when machine-readable logs are requested, so engine/indexer logs and ours can
be correlated by request id.

Usage:
    from auditcore.utils.logging import logger
    logger.info("Message")
    logger.debug("Debug message")  # Only shows if AUDITCORE_LOG_LEVEL=DEBUG

Environment Variables:
    AUDITCORE_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
    AUDITCORE_LOG_JSON: 0|1 (default: 0, human-readable)
    AUDITCORE_LOG_FILE: path to log file (optional)
    AUDITCORE_REQUEST_ID: correlation ID passed down to external processes
"""

import json
import os
import sys
import uuid

from loguru import logger

logger.remove()

# Pino-compatible numeric levels
PINO_LEVELS = {
    "TRACE": 10,
    "DEBUG": 20,
    "INFO": 30,
    "SUCCESS": 30,
    "WARNING": 40,
    "ERROR": 50,
    "CRITICAL": 60,
}

_log_level = os.environ.get("AUDITCORE_LOG_LEVEL", "INFO").upper()
_json_mode = os.environ.get("AUDITCORE_LOG_JSON", "0") == "1"
_log_file = os.environ.get("AUDITCORE_LOG_FILE")
_request_id = os.environ.get("AUDITCORE_REQUEST_ID") or str(uuid.uuid4())


def _to_pino(record) -> dict:
    """Convert a loguru record into a Pino log object."""
    pino_log = {
        "level": PINO_LEVELS.get(record["level"].name, 30),
        "time": int(record["time"].timestamp() * 1000),
        "msg": record["message"],
        "pid": record["process"].id,
        "request_id": record["extra"].get("request_id", _request_id),
    }

    for key, value in record["extra"].items():
        if key != "request_id":
            pino_log[key] = value

    if record["exception"]:
        pino_log["err"] = {
            "type": record["exception"].type.__name__ if record["exception"].type else "Error",
            "message": str(record["exception"].value) if record["exception"].value else "",
        }
    return pino_log


def pino_compatible_sink(message):
    """Write a log record to stdout as Pino-compatible NDJSON.

    {"level":30,"time":1715629847123,"msg":"...","pid":12345,"request_id":"..."}
    """
    # Never call logger.* inside a sink - causes infinite recursion
    sys.stdout.write(json.dumps(_to_pino(message.record), default=str) + "\n")
    sys.stdout.flush()


_human_format = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan> - "
    "<level>{message}</level>"
)

logger.level("DEBUG", color="<blue>")
logger.level("INFO", color="<white>")
logger.level("WARNING", color="<yellow>")
logger.level("ERROR", color="<red>")
logger.level("CRITICAL", color="<red><bold>")

if _json_mode:
    logger.add(pino_compatible_sink, level=_log_level, colorize=False)
else:
    logger.add(
        sys.stderr,
        level=_log_level,
        format=_human_format,
        colorize=None,  # colors only on a TTY
    )

if _log_file:

    def _file_pino_sink(message):
        """Append Pino-format JSON to the configured log file."""
        with open(_log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(_to_pino(message.record), default=str) + "\n")

    logger.add(_file_pino_sink, level="DEBUG")


def get_subprocess_env() -> dict:
    """Get environment dict with REQUEST_ID for subprocess calls.

    Use this as the base environment for the analysis engine and the binary
    indexer so their logs can be correlated with ours.
    """
    env = os.environ.copy()
    env["AUDITCORE_REQUEST_ID"] = _request_id
    return env


__all__ = [
    "logger",
    "get_subprocess_env",
]
