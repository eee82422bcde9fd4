"""JAS scanner framework - session, modules and the shared scanner lifecycle.

A JasScanner session owns one temp directory holding a config/results file
pair. For every module it hands the pair to a ScannerCmd, which walks the
same state machine regardless of scan type:

    IDLE -> CONFIG_WRITTEN -> ENGINE_EXECUTED -> RESULTS_PARSED -> AGGREGATED
                                                          (or FAILED)

Modules run one at a time; the pair is deleted after every module pass.
"""

import os
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from auditcore.config import ServerDetails
from auditcore.errors import (
    AuditError,
    CleanupError,
    ConfigurationError,
    EngineExecutionError,
    SarifParseError,
    join_errors,
)
from auditcore.jas.engine import AnalyzerManager, parse_engine_error
from auditcore.jas.sarif import read_first_run_results
from auditcore.utils.constants import SCANNER_CONFIG_FILE_NAME, SCANNER_RESULTS_FILE_NAME
from auditcore.utils.logging import logger
from auditcore.utils.temp_manager import TempManager

NODE_MODULES_PATTERN = "**/*node_modules*/**"
VIRTUAL_ENV_PATTERN = "**/*venv*/**"

DEFAULT_EXCLUDE_PATTERNS = [
    "**/.git/**",
    "**/*test*/**",
    VIRTUAL_ENV_PATTERN,
    NODE_MODULES_PATTERN,
    "**/target/**",
]


class ScanType(str, Enum):
    """The four local analysis scanners."""

    APPLICABILITY = "Applicability"
    SECRETS = "Secrets"
    IAC = "IaC"
    SAST = "Sast"

    def __str__(self) -> str:
        return self.value

    @property
    def config_key(self) -> str:
        """Key used in apps-config ``scanners`` and ``exclude_scanners``."""
        return self.value.lower()


class ScanState(Enum):
    IDLE = "idle"
    CONFIG_WRITTEN = "config_written"
    ENGINE_EXECUTED = "engine_executed"
    RESULTS_PARSED = "results_parsed"
    AGGREGATED = "aggregated"
    FAILED = "failed"


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


@dataclass(frozen=True)
class ScannerConfig:
    """Per-scanner overrides inside one module."""

    working_dirs: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()
    language: str = ""
    excluded_rules: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ScannerConfig":
        data = data or {}
        return cls(
            working_dirs=_as_tuple(data.get("working_dirs")),
            exclude_patterns=_as_tuple(data.get("exclude_patterns")),
            language=data.get("language") or "",
            excluded_rules=_as_tuple(data.get("excluded_rules")),
        )


@dataclass(frozen=True)
class Module:
    """One scan target: a source root plus its scanner settings.

    Modules are built once before any scanner runs and never change during a
    session.
    """

    source_root: str
    exclude_patterns: tuple[str, ...] = ()
    exclude_scanners: tuple[str, ...] = ()
    scanners: Mapping[str, ScannerConfig] = field(default_factory=dict)
    # Scan dependencies' own sources for applicability (indirect CVEs)
    third_party: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base_dir: str | Path = ".") -> "Module":
        source_root = data.get("source_root") or "."
        root = Path(source_root)
        if not root.is_absolute():
            root = Path(base_dir) / root
        scanners = {
            str(name).lower(): ScannerConfig.from_dict(config)
            for name, config in (data.get("scanners") or {}).items()
        }
        return cls(
            source_root=os.path.abspath(root),
            exclude_patterns=_as_tuple(data.get("exclude_patterns")),
            exclude_scanners=tuple(s.lower() for s in _as_tuple(data.get("exclude_scanners"))),
            scanners=scanners,
            third_party=bool(data.get("third_party", False)),
        )

    def scanner_config(self, scan_type: ScanType) -> ScannerConfig | None:
        return self.scanners.get(scan_type.config_key)


def load_modules(
    working_dirs: Iterable[str] | None = None,
    apps_config: str | Path | None = None,
) -> list[Module]:
    """Build the module list for a session.

    An existing apps-config file wins; otherwise every working directory
    (default: the current directory) becomes a bare module.

    Raises:
        ConfigurationError: If the apps-config file is not valid YAML or has
            the wrong shape
    """
    if apps_config is not None and Path(apps_config).is_file():
        path = Path(apps_config)
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read modules config {path}: {e}") from e

        raw_modules = data.get("modules") if isinstance(data, dict) else None
        if not isinstance(raw_modules, list):
            raise ConfigurationError(f"Modules config {path} must contain a 'modules' list")
        # Relative source roots are resolved against the project, not .pf/
        base_dir = path.parent.parent if path.parent.name == ".pf" else path.parent
        modules = [Module.from_dict(m or {}, base_dir=base_dir) for m in raw_modules]
        logger.debug(f"Loaded {len(modules)} module(s) from {path}")
        return modules

    dirs = list(working_dirs or []) or [os.getcwd()]
    return [Module(source_root=os.path.abspath(d)) for d in dirs]


def should_skip_scanner(module: Module, scan_type: ScanType) -> bool:
    if scan_type.config_key in module.exclude_scanners:
        logger.info(f"Skipping {scan_type} scanning")
        return True
    return False


def get_source_roots(module: Module, scanner_config: ScannerConfig | None) -> list[str]:
    root = os.path.abspath(module.source_root)
    if scanner_config is None or not scanner_config.working_dirs:
        return [root]
    return [os.path.join(root, wd) for wd in scanner_config.working_dirs]


def get_exclude_patterns(module: Module, scanner_config: ScannerConfig | None) -> list[str]:
    patterns = list(module.exclude_patterns)
    if scanner_config is not None:
        patterns.extend(scanner_config.exclude_patterns)
    return patterns or list(DEFAULT_EXCLUDE_PATTERNS)


def write_scanner_config(path: str | Path, content: Mapping[str, Any], scan_type: ScanType) -> None:
    """Serialize engine input YAML to ``path``.

    Raises:
        ConfigurationError: If the content cannot be serialized or written
    """
    try:
        yaml_data = yaml.safe_dump(dict(content), sort_keys=False, default_flow_style=False)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not serialize {scan_type} scanner config: {e}") from e
    logger.debug(f"{scan_type} scanner input YAML:\n{yaml_data}")
    try:
        Path(path).write_text(yaml_data, encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Could not write {scan_type} scanner config to {path}: {e}") from e


class ScannerCmd(ABC):
    """One scanner type's configure / execute / ingest steps.

    Subclasses provide ``scan_type``, ``scan_command`` and ``engine_scan_type``
    and implement build_config() and process_results(). The driver
    (JasScanner.run) only ever calls run_module().
    """

    scan_type: ScanType
    # Engine subcommand (``ca``, ``sec``, ``iac``, ``zd``)
    scan_command: str
    # ``type`` field of the engine's scan config
    engine_scan_type: str

    def __init__(self):
        self.state = ScanState.IDLE
        self.results: list[Any] = []

    @abstractmethod
    def build_config(self, session: "JasScanner", module: Module) -> dict[str, Any]:
        """Return the engine config document for one module."""
        ...

    @abstractmethod
    def process_results(self, results: list[dict[str, Any]], module: Module) -> list[Any]:
        """Post-process unsuppressed SARIF results of one module."""
        ...

    def scanner_config(self, module: Module) -> ScannerConfig | None:
        return module.scanner_config(self.scan_type)

    def base_scan_config(self, session: "JasScanner", module: Module) -> dict[str, Any]:
        scanner_config = self.scanner_config(module)
        return {
            "roots": get_source_roots(module, scanner_config),
            "output": str(session.results_file),
            "type": self.engine_scan_type,
            "skipped-folders": get_exclude_patterns(module, scanner_config),
        }

    def engine_working_dir(self, session: "JasScanner", module: Module) -> Path:
        return session.engine.default_working_dir

    def configure(self, session: "JasScanner", module: Module) -> None:
        write_scanner_config(session.config_file, self.build_config(session, module), self.scan_type)
        self.state = ScanState.CONFIG_WRITTEN

    def execute(self, session: "JasScanner", module: Module) -> None:
        session.engine.exec(
            session.config_file,
            self.scan_command,
            self.engine_working_dir(session, module),
            session.server_details,
        )
        self.state = ScanState.ENGINE_EXECUTED

    def ingest(self, session: "JasScanner", module: Module) -> list[Any]:
        results = read_first_run_results(session.results_file)
        try:
            findings = self.process_results(results, module)
        except (AttributeError, TypeError, KeyError, ValueError) as e:
            raise SarifParseError(f"Malformed SARIF results in {session.results_file}: {e}") from e
        self.state = ScanState.RESULTS_PARSED
        return findings

    def aggregate(self, findings: list[Any]) -> None:
        self.results.extend(findings)

    def run_module(self, session: "JasScanner", module: Module) -> None:
        """Take one module through the whole state machine."""
        self.state = ScanState.IDLE
        try:
            self.configure(session, module)
            self.execute(session, module)
            findings = self.ingest(session, module)
        except Exception:
            self.state = ScanState.FAILED
            raise
        self.aggregate(findings)
        self.state = ScanState.AGGREGATED


class JasScanner:
    """One JAS scan session.

    Use as a context manager; the temp directory is removed on exit no matter
    how the block ends. A removal failure never replaces an exception already
    raised in the block; it is kept in ``cleanup_error`` for the caller to join.

        with JasScanner(engine, modules, server_details) as session:
            error = session.run(SecretsScanner())
    """

    def __init__(
        self,
        engine: AnalyzerManager,
        modules: list[Module],
        server_details: ServerDetails | None = None,
        temp_base_dir: str | Path | None = None,
    ):
        self.engine = engine
        self.modules = list(modules)
        self.server_details = server_details
        self._temp_base_dir = temp_base_dir or None
        self.temp_dir: Path | None = None
        self.cleanup_error: CleanupError | None = None

    def __enter__(self) -> "JasScanner":
        self.temp_dir = TempManager.create_temp_dir(prefix="jas", base_dir=self._temp_base_dir)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup_error = self.close()
        if self.cleanup_error is not None:
            logger.error(str(self.cleanup_error))

    def close(self) -> CleanupError | None:
        """Remove the session temp directory, returning (not raising) any failure."""
        if self.temp_dir is None:
            return None
        temp_dir, self.temp_dir = self.temp_dir, None
        try:
            TempManager.remove_temp_dir(temp_dir)
        except OSError as e:
            return CleanupError(f"Could not remove JAS temp directory {temp_dir}: {e}")
        return None

    def _require_temp_dir(self) -> Path:
        if self.temp_dir is None:
            raise AuditError("JasScanner session is not open; use it as a context manager")
        return self.temp_dir

    @property
    def config_file(self) -> Path:
        return self._require_temp_dir() / SCANNER_CONFIG_FILE_NAME

    @property
    def results_file(self) -> Path:
        return self._require_temp_dir() / SCANNER_RESULTS_FILE_NAME

    def delete_process_files(self) -> CleanupError | None:
        """Remove the config/results pair, returning (not raising) any failure."""
        try:
            TempManager.remove_file_if_exists(self.config_file)
            TempManager.remove_file_if_exists(self.results_file)
        except OSError as e:
            return CleanupError(f"Could not remove scanner temp files: {e}")
        return None

    def run(self, cmd: ScannerCmd) -> BaseException | None:
        """Run one scanner over every module.

        Failures are collected per module and returned joined, next to the
        partial results already aggregated in ``cmd.results``. Soft-skip
        exit codes stop this scanner type without an error; a failure to
        launch the engine at all stops it with one.
        """
        errors = []
        for module in self.modules:
            if should_skip_scanner(module, cmd.scan_type):
                continue
            if len(self.modules) > 1:
                logger.info(f"Running {cmd.scan_type} scanning in {module.source_root}...")

            module_error = None
            try:
                cmd.run_module(self, module)
            except (AuditError, OSError) as e:
                module_error = e
            finally:
                cleanup_error = self.delete_process_files()

            if isinstance(module_error, EngineExecutionError) and module_error.is_soft_skip:
                parse_engine_error(cmd.scan_type, module_error)
                if cleanup_error is not None:
                    errors.append(parse_engine_error(cmd.scan_type, cleanup_error))
                break

            error = parse_engine_error(cmd.scan_type, join_errors(module_error, cleanup_error))
            if error is not None:
                logger.error(str(error))
                errors.append(error)
            if isinstance(module_error, EngineExecutionError) and not module_error.launched:
                break
        return join_errors(*errors)
