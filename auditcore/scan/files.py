"""File specs and file collection for binary scans."""

import fnmatch
import glob
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

_WILDCARDS = ("*", "?", "[")


@dataclass(frozen=True)
class FileSpec:
    """Which local files to scan and where the scanning service should file them.

    Attributes:
        pattern: Path or wildcard pattern (``~`` is expanded)
        target: Repository path the results are reported under
        recursive: Descend into subdirectories of the walked root
        exclusions: Wildcard patterns of paths to leave out
    """

    pattern: str
    target: str = ""
    recursive: bool = True
    exclusions: tuple[str, ...] = ()


def _has_wildcard(part: str) -> bool:
    return any(w in part for w in _WILDCARDS)


def get_root_path(pattern: str) -> str:
    """Longest leading directory of ``pattern`` that holds no wildcard."""
    parts = Path(pattern).parts
    root_parts = []
    for part in parts:
        if _has_wildcard(part):
            break
        root_parts.append(part)
    if not root_parts:
        return "."
    return str(Path(*root_parts))


def _is_excluded(path: str, exclusions: tuple[str, ...]) -> bool:
    return any(fnmatch.fnmatch(path, pattern) for pattern in exclusions)


def collect_files(spec: FileSpec) -> Iterator[str]:
    """Yield every file matched by ``spec``, never directories.

    A pattern naming an existing file yields just that file. Otherwise the
    wildcard-free prefix is walked and each file matching the pattern and
    none of the exclusions is yielded.
    """
    pattern = os.path.expanduser(spec.pattern)
    exclusions = tuple(os.path.expanduser(e) for e in spec.exclusions)

    if os.path.isfile(pattern):
        yield pattern
        return

    root = get_root_path(pattern)
    if not os.path.isdir(root):
        return

    # A bare directory means everything under it
    match_pattern = pattern
    if not _has_wildcard(pattern):
        match_pattern = os.path.join(pattern, "*")

    if spec.recursive:
        for dirpath, _dirnames, filenames in os.walk(root):
            for name in sorted(filenames):
                path = os.path.join(dirpath, name)
                if _matches(path, match_pattern) and not _is_excluded(path, exclusions):
                    yield path
    else:
        for path in sorted(glob.glob(os.path.join(root, "*"))):
            if not os.path.isfile(path):
                continue
            if _matches(path, match_pattern) and not _is_excluded(path, exclusions):
                yield path


def _matches(path: str, pattern: str) -> bool:
    # fnmatch's '*' also crosses '/', which gives the recursive semantics
    # expected from patterns such as 'dir/*.jar'
    return fnmatch.fnmatch(os.path.normpath(path), os.path.normpath(pattern))
