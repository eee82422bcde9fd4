"""Centralized constants for auditcore.

Single source of truth for output paths, file names shared with the analysis
engine, and environment variable names.
"""

from pathlib import Path

# ============================================================================
# OUTPUT DIRECTORIES
# ============================================================================

# Primary output directory for all auditcore artifacts
PF_DIR = Path("./.pf")

ERROR_LOG_FILE = PF_DIR / "error.log"
RUNTIME_CONFIG_FILE = "config.json"

# ============================================================================
# ANALYSIS ENGINE
# ============================================================================

ENGINE_DIR_NAME = "analyzerManager"
ENGINE_EXECUTABLE_NAME = "analyzerManager"

# Per-session temp file names (recreated for every module x scanner pass)
SCANNER_CONFIG_FILE_NAME = "config.yaml"
SCANNER_RESULTS_FILE_NAME = "results.sarif"

# ============================================================================
# ENVIRONMENT VARIABLES
# ============================================================================

# Read by auditcore
ENV_ENGINE_PATH = "AUDITCORE_ENGINE_PATH"
ENV_SERVER_URL = "AUDITCORE_URL"
ENV_SERVER_USER = "AUDITCORE_USER"
ENV_SERVER_PASSWORD = "AUDITCORE_PASSWORD"
ENV_SERVER_TOKEN = "AUDITCORE_ACCESS_TOKEN"

# Handed to the analysis engine process
ENGINE_ENV_USER = "JF_USER"
ENGINE_ENV_PASSWORD = "JF_PASS"
ENGINE_ENV_TOKEN = "JF_TOKEN"
ENGINE_ENV_PLATFORM_URL = "JF_PLATFORM_URL"
ENGINE_ENV_LOG_DIR = "AM_LOG_DIRECTORY"
