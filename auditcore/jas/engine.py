"""Analysis engine (analyzer manager) process handle.

The engine is a single external executable driven by subcommand:

    <engine> <subcommand> <config.yaml> [multi-scan-id]

Credentials and the log directory are passed through the process environment
only, never on the command line. The subprocess pattern (list argv, captured
text output, optional timeout, environment from get_subprocess_env) follows
the rest of auditcore's external-tool wrappers.
"""

import subprocess
from pathlib import Path

from auditcore.config import ServerDetails
from auditcore.errors import EngineExecutionError, ScannerError
from auditcore.utils.constants import (
    ENGINE_ENV_LOG_DIR,
    ENGINE_ENV_PASSWORD,
    ENGINE_ENV_PLATFORM_URL,
    ENGINE_ENV_TOKEN,
    ENGINE_ENV_USER,
)
from auditcore.utils.exit_codes import EngineExitCodes
from auditcore.utils.logging import get_subprocess_env, logger


class AnalyzerManager:
    """Handle on one analysis engine binary.

    Instances are passed into JasScanner explicitly; there is no
    process-wide engine reference.
    """

    def __init__(
        self,
        executable: str | Path,
        multi_scan_id: str = "",
        log_dir: str | Path | None = None,
        timeout: int | None = None,
    ):
        self.executable = Path(executable)
        self.multi_scan_id = multi_scan_id
        self.log_dir = Path(log_dir).expanduser() if log_dir else None
        self.timeout = timeout

    @property
    def default_working_dir(self) -> Path:
        """Directory holding the engine binary; most subcommands run from there."""
        return self.executable.parent

    def build_env(self, server_details: ServerDetails | None) -> dict:
        env = get_subprocess_env()
        if server_details is not None:
            env[ENGINE_ENV_USER] = server_details.user
            env[ENGINE_ENV_PASSWORD] = server_details.password
            env[ENGINE_ENV_PLATFORM_URL] = server_details.url
            env[ENGINE_ENV_TOKEN] = server_details.access_token
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            env[ENGINE_ENV_LOG_DIR] = str(self.log_dir)
        return env

    def exec(
        self,
        config_file: str | Path,
        scan_command: str,
        working_dir: str | Path | None = None,
        server_details: ServerDetails | None = None,
    ) -> None:
        """Run one engine subcommand against a written config file.

        Raises:
            EngineExecutionError: On non-zero exit (``exit_code`` set), on
                timeout (``timed_out`` set) or when the process could not be
                started
        """
        cmd = [str(self.executable), scan_command, str(config_file)]
        if self.multi_scan_id:
            cmd.append(self.multi_scan_id)
        cwd = Path(working_dir) if working_dir else self.default_working_dir

        logger.debug(f"Running analyzer manager: {' '.join(cmd)} (cwd={cwd})")
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd),
                env=self.build_env(server_details),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise EngineExecutionError(
                f"analyzer manager '{scan_command}' timed out after {self.timeout}s",
                timed_out=True,
            ) from e
        except OSError as e:
            raise EngineExecutionError(f"could not start analyzer manager: {e}") from e

        if result.returncode != 0:
            raise EngineExecutionError(
                f"Exit code received: {result.returncode}",
                exit_code=result.returncode,
                stderr=result.stderr,
            )


def parse_engine_error(scan_type, err: BaseException | None) -> BaseException | None:
    """Classify a scanner failure.

    Soft-skip exit codes (not entitled, unsupported command, unsupported OS)
    are logged and swallowed; everything else is wrapped with the scan type.
    """
    if err is None:
        return None
    if isinstance(err, EngineExecutionError) and err.is_soft_skip:
        logger.warning(EngineExitCodes.DESCRIPTIONS[err.exit_code])
        return None
    if isinstance(err, ScannerError):
        return err
    return ScannerError(scan_type, err)
