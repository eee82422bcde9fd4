"""auditcore CLI commands."""
