"""auditcore - dependency graph engine and security scanner orchestration."""

__version__ = "1.0.0"
