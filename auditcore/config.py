"""Runtime configuration for auditcore - centralized configuration management."""

import copy
import json
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from auditcore.utils.constants import (
    ENGINE_DIR_NAME,
    ENGINE_EXECUTABLE_NAME,
    ENV_ENGINE_PATH,
    ENV_SERVER_PASSWORD,
    ENV_SERVER_TOKEN,
    ENV_SERVER_URL,
    ENV_SERVER_USER,
    RUNTIME_CONFIG_FILE,
)
from auditcore.utils.logging import logger

IS_WINDOWS = platform.system() == "Windows"

DEFAULTS = {
    "paths": {
        "pf_dir": "./.pf",
        "apps_config": "./.pf/apps-config.yml",
        "home_dir": "~/.auditcore",
        "temp_dir": "",
    },
    "limits": {
        "max_unique_appearances": 10,
        "scan_threads": 3,
        "max_queued_tasks": 20000,
    },
    "timeouts": {
        # 0 disables the deadline
        "engine": 0,
        "indexer": 0,
    },
    "engine": {
        "path": "",
        "log_dir": "~/.auditcore/logs/analyzerManagerLogs",
        "multi_scan_id": "",
    },
}


def load_runtime_config(root: str = ".") -> dict[str, Any]:
    """
    Load runtime configuration from .pf/config.json and environment variables.

    Config priority (highest to lowest):
    1. Environment variables (AUDITCORE_<SECTION>_<KEY>)
    2. .pf/config.json file
    3. Built-in defaults

    Args:
        root: Root directory to look for config file

    Returns:
        Configuration dictionary with merged values
    """
    cfg = copy.deepcopy(DEFAULTS)

    path = Path(root) / ".pf" / RUNTIME_CONFIG_FILE
    try:
        if path.exists():
            with open(path, encoding="utf-8") as f:
                user = json.load(f)

            if isinstance(user, dict):
                for section in cfg:
                    if section in user and isinstance(user[section], dict):
                        for key, value in user[section].items():
                            if key in cfg[section] and isinstance(value, type(cfg[section][key])):
                                cfg[section][key] = value
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Could not load config file from {path}: {e}")
        logger.info("Continuing with default configuration")

    for section in cfg:
        for key in cfg[section]:
            env_var = f"AUDITCORE_{section.upper()}_{key.upper()}"
            if env_var not in os.environ:
                continue
            value = os.environ[env_var]
            default_value = cfg[section][key]
            try:
                if isinstance(default_value, int):
                    cfg[section][key] = int(value)
                elif isinstance(default_value, float):
                    cfg[section][key] = float(value)
                elif isinstance(default_value, list):
                    cfg[section][key] = [v.strip() for v in value.split(",")]
                else:
                    cfg[section][key] = value
            except ValueError as e:
                logger.warning(f"Invalid value for environment variable {env_var}: '{value}' - {e}")
                logger.info(f"Using default value: {cfg[section][key]}")

    return cfg


def timeout_or_none(seconds: int) -> int | None:
    """Map the config convention (0 = no deadline) to subprocess semantics."""
    return seconds if seconds > 0 else None


def get_engine_executable(cfg: dict[str, Any]) -> Path:
    """Resolve the analysis engine binary location.

    Priority: AUDITCORE_ENGINE_PATH, then engine.path from config, then the
    default install location under the auditcore home directory.

    Raises:
        FileNotFoundError: If the resolved binary does not exist
    """
    configured = os.environ.get(ENV_ENGINE_PATH) or cfg["engine"]["path"]
    if configured:
        engine = Path(configured).expanduser()
    else:
        name = f"{ENGINE_EXECUTABLE_NAME}.exe" if IS_WINDOWS else ENGINE_EXECUTABLE_NAME
        home = Path(cfg["paths"]["home_dir"]).expanduser()
        engine = home / "dependencies" / ENGINE_DIR_NAME / name

    if not engine.exists():
        raise FileNotFoundError(
            f"Unable to locate the analyzer manager at {engine}. "
            "Advanced security scans cannot be performed without this package."
        )
    return engine


@dataclass
class ServerDetails:
    """Connection details handed to the analysis engine and the scan service."""

    url: str = ""
    user: str = ""
    password: str = ""
    access_token: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.url)


def load_server_details() -> ServerDetails:
    """Read platform credentials from the environment."""
    return ServerDetails(
        url=os.environ.get(ENV_SERVER_URL, ""),
        user=os.environ.get(ENV_SERVER_USER, ""),
        password=os.environ.get(ENV_SERVER_PASSWORD, ""),
        access_token=os.environ.get(ENV_SERVER_TOKEN, ""),
    )
