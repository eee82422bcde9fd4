"""Binary (artifact) scanning: file specs, indexer and the two-pool pipeline."""

from .files import FileSpec, collect_files
from .indexer import BinaryIndexer
from .pipeline import BinaryScanPipeline, BinaryScanResults, get_repo_path_from_target
from .pool import WorkerPool

__all__ = [
    "BinaryIndexer",
    "BinaryScanPipeline",
    "BinaryScanResults",
    "FileSpec",
    "WorkerPool",
    "collect_files",
    "get_repo_path_from_target",
]
