"""Centralized exit codes for the auditcore CLI and its external processes."""


class ExitCodes:
    """Standard exit codes for auditcore CLI commands."""

    SUCCESS = 0

    TASK_INCOMPLETE = 4

    @classmethod
    def get_description(cls, code: int) -> str:
        """Get human-readable description for an exit code."""
        descriptions = {
            cls.SUCCESS: "Success - No blocking issues found",
            cls.TASK_INCOMPLETE: "One or more scans could not be completed",
        }
        return descriptions.get(code, f"Unknown exit code: {code}")


class EngineExitCodes:
    """Reserved exit codes of the analysis engine process."""

    NOT_ENTITLED = 31
    UNSUPPORTED_COMMAND = 13
    UNSUPPORTED_OS = 55

    DESCRIPTIONS = {
        NOT_ENTITLED: "got not entitled error from analyzer manager",
        UNSUPPORTED_COMMAND: "got unsupported scan command error from analyzer manager",
        UNSUPPORTED_OS: "got unsupported operating system error from analyzer manager",
    }

    @classmethod
    def is_soft_skip(cls, code: int | None) -> bool:
        """True when the exit code means 'skip this scanner' rather than failure."""
        return code in cls.DESCRIPTIONS


class IndexerExitCodes:
    """Reserved exit codes of the binary indexer process."""

    FILE_NOT_SUPPORTED = 3
