"""auditcore utilities package.

error_handler is imported directly by the commands; it depends on
auditcore.errors, which itself imports from this package.
"""

from .constants import (
    ERROR_LOG_FILE,
    PF_DIR,
    SCANNER_CONFIG_FILE_NAME,
    SCANNER_RESULTS_FILE_NAME,
)
from .exit_codes import EngineExitCodes, ExitCodes, IndexerExitCodes
from .logging import get_subprocess_env, logger
from .temp_manager import TempManager

__all__ = [
    "PF_DIR",
    "ERROR_LOG_FILE",
    "SCANNER_CONFIG_FILE_NAME",
    "SCANNER_RESULTS_FILE_NAME",
    "ExitCodes",
    "EngineExitCodes",
    "IndexerExitCodes",
    "logger",
    "get_subprocess_env",
    "TempManager",
]
