"""Exception types shared by the SCA, JAS and binary scan flows."""

from auditcore.utils.exit_codes import EngineExitCodes


class AuditError(Exception):
    """Base class for all auditcore failures."""

    pass


class ConfigurationError(AuditError):
    """Raised when a scanner configuration file cannot be serialized or written."""

    pass


class EngineExecutionError(AuditError):
    """Raised when the analysis engine exits non-zero or cannot be launched.

    ``exit_code`` is None when the process never exited on its own: either it
    never started (missing binary, permission denied) or it was killed at the
    deadline, in which case ``timed_out`` is set.
    """

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
        self.timed_out = timed_out

    @property
    def is_soft_skip(self) -> bool:
        """True for the reserved 'not entitled' / 'unsupported' exit codes."""
        return EngineExitCodes.is_soft_skip(self.exit_code)

    @property
    def launched(self) -> bool:
        """False when the engine process never started."""
        return self.exit_code is not None or self.timed_out


class SarifParseError(AuditError):
    """Raised when the SARIF results file is missing, unreadable or malformed."""

    pass


class CleanupError(AuditError):
    """Raised when temporary scanner files cannot be removed."""

    pass


class ScannerError(AuditError):
    """A scanner-type-scoped failure, wrapping the underlying cause."""

    def __init__(self, scan_type, cause: BaseException):
        super().__init__(f"failed to run {scan_type} scan. {cause}")
        self.scan_type = scan_type
        self.cause = cause


class IndexerError(AuditError):
    """Raised when the binary indexer fails on a file."""

    pass


class ScanServiceError(AuditError):
    """Raised when the scanning service rejects or fails a graph scan."""

    pass


def join_errors(*errors: BaseException | None) -> BaseException | None:
    """Aggregate errors without letting a later one mask an earlier one.

    None entries are ignored and nested groups are flattened. A single error
    is returned unchanged; two or more are wrapped in an ExceptionGroup.
    """
    collected = []
    for err in errors:
        collected.extend(iter_errors(err))

    if not collected:
        return None
    if len(collected) == 1:
        return collected[0]
    return ExceptionGroup(f"{len(collected)} errors occurred", collected)


def iter_errors(error: BaseException | None) -> list[BaseException]:
    """Flatten a possibly-grouped error into a plain list."""
    if error is None:
        return []
    if isinstance(error, BaseExceptionGroup):
        flat = []
        for inner in error.exceptions:
            flat.extend(iter_errors(inner))
        return flat
    return [error]
