"""Centralized temporary directory management for auditcore."""

import shutil
import tempfile
import uuid
from pathlib import Path


class TempManager:
    """Creates and removes the scratch directories used by scan sessions."""

    @staticmethod
    def create_temp_dir(prefix: str = "auditcore", base_dir: str | Path | None = None) -> Path:
        """Create a fresh private temp directory and return its path."""
        if base_dir is not None:
            Path(base_dir).mkdir(parents=True, exist_ok=True)
        unique_prefix = f"{prefix}_{uuid.uuid4().hex[:8]}_"
        return Path(tempfile.mkdtemp(prefix=unique_prefix, dir=base_dir))

    @staticmethod
    def remove_temp_dir(temp_dir: str | Path) -> None:
        """Remove a temp directory tree. Missing directories are not an error."""
        path = Path(temp_dir)
        if not path.exists():
            return
        shutil.rmtree(path)

    @staticmethod
    def remove_file_if_exists(file_path: str | Path) -> bool:
        """Remove a single file. Returns True if a file was removed."""
        path = Path(file_path)
        if not path.exists():
            return False
        path.unlink()
        return True
