"""Binary indexer process wrapper.

The indexer turns one local artifact (jar, tarball, binary ...) into a
dependency graph:

    <indexer> graph <file> --temp-dir <dir>

stdout carries the graph as JSON. Exit code 3 means the file type is not
supported, which is not an error: the file simply yields no graph.
"""

import json
import subprocess
from pathlib import Path

from auditcore.errors import IndexerError
from auditcore.graph.types import GraphNode
from auditcore.utils.exit_codes import IndexerExitCodes
from auditcore.utils.logging import get_subprocess_env, logger

INDEXING_COMMAND = "graph"


class BinaryIndexer:
    def __init__(self, executable: str | Path, temp_dir: str | Path, timeout: int | None = None):
        self.executable = Path(executable)
        self.temp_dir = Path(temp_dir)
        self.timeout = timeout

    def index_file(self, file_path: str | Path) -> GraphNode | None:
        """Index one file.

        Returns:
            The file's graph, or None when the indexer does not support the
            file or reports an empty graph

        Raises:
            IndexerError: If the indexer fails or emits invalid JSON
        """
        cmd = [
            str(self.executable),
            INDEXING_COMMAND,
            str(file_path),
            "--temp-dir",
            str(self.temp_dir),
        ]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=get_subprocess_env(),
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise IndexerError(f"Indexer timed out on {file_path} after {self.timeout}s") from e
        except OSError as e:
            raise IndexerError(f"Could not start indexer for {file_path}: {e}") from e

        if result.returncode == IndexerExitCodes.FILE_NOT_SUPPORTED:
            logger.debug(f"File {file_path} is not supported by the indexer")
            return None
        if result.returncode != 0:
            raise IndexerError(
                f"Indexer failed indexing {file_path} with exit code {result.returncode}: "
                f"{result.stderr.strip()}"
            )

        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise IndexerError(f"Indexer returned invalid JSON for {file_path}: {e}") from e
        if not isinstance(data, dict):
            raise IndexerError(f"Indexer returned unexpected output for {file_path}")

        graph = GraphNode.from_dict(data)
        return graph if graph.id else None
