"""Ant-style file-set matching.

Patterns are relative to the file-set's directory and use ``/`` as separator:

- ``*``, ``?`` and ``[...]`` match within a single path segment;
- ``**`` matches zero or more whole segments;
- a trailing ``/`` is shorthand for ``/**``.

An empty include list selects every file. Matching is case-sensitive.
"""

import fnmatch
import os
import pathlib

from jar_flattener.errors import ConfigurationError
from jar_flattener.ports import NativeLibrarySpec


class GlobFileSetMatcher:
    """Expand :class:`~jar_flattener.ports.NativeLibrarySpec` values on the local filesystem."""

    def match(self, spec: NativeLibrarySpec) -> list[pathlib.Path]:
        """Return files under ``spec.directory`` selected by its patterns.

        :param spec: File-set spec.
        :returns: Matching files, sorted by relative POSIX path.
        :raises ConfigurationError: If the directory is missing or a pattern is malformed.
        """

        directory: pathlib.Path = spec.directory
        if directory.is_dir() is False:
            raise ConfigurationError(f"Native library directory does not exist: {directory}")

        includes: list[list[str]] = [_split_pattern(p) for p in spec.includes]
        if len(includes) == 0:
            includes = [["**"]]
        excludes: list[list[str]] = [_split_pattern(p) for p in spec.excludes]

        rel_files: list[str] = []
        for root_str, dirs, files in os.walk(directory):
            dirs.sort()
            root_path: pathlib.Path = pathlib.Path(root_str)
            for name in files:
                rel: str = (root_path / name).relative_to(directory).as_posix()
                rel_files.append(rel)

        out: list[pathlib.Path] = []
        for rel in sorted(rel_files):
            parts: list[str] = rel.split("/")
            if not any(_match_parts(parts, pat) for pat in includes):
                continue
            if any(_match_parts(parts, pat) for pat in excludes):
                continue
            out.append(directory / rel)
        return out


def validate_pattern(pattern: str) -> None:
    """Check that ``pattern`` is a usable relative glob.

    :param pattern: Pattern text.
    :raises ConfigurationError: If the pattern is malformed.
    """

    _split_pattern(pattern)


def _split_pattern(pattern: str) -> list[str]:
    """Normalize a pattern into path segments.

    :param pattern: Pattern text.
    :returns: Segments with runs of ``**`` collapsed.
    :raises ConfigurationError: If the pattern is malformed.
    """

    norm: str = pattern.strip().replace("\\", "/")
    if len(norm) == 0:
        raise ConfigurationError("Empty file-set pattern")
    if norm.startswith("/") is True or pathlib.PureWindowsPath(norm).drive != "":
        raise ConfigurationError(f"File-set pattern must be relative: {pattern!r}")
    if norm.endswith("/") is True:
        norm = norm + "**"

    segments: list[str] = []
    for part in norm.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            raise ConfigurationError(f"File-set pattern must not contain '..': {pattern!r}")
        if _brackets_balanced(part) is False:
            raise ConfigurationError(f"Unbalanced '[' in file-set pattern: {pattern!r}")
        if part == "**" and len(segments) > 0 and segments[-1] == "**":
            continue
        segments.append(part)

    if len(segments) == 0:
        raise ConfigurationError(f"File-set pattern selects nothing: {pattern!r}")
    return segments


def _brackets_balanced(segment: str) -> bool:
    depth: int = 0
    for c in segment:
        if c == "[":
            if depth > 0:
                return False
            depth += 1
        elif c == "]" and depth > 0:
            depth -= 1
    return depth == 0


def _match_parts(path_parts: list[str], pattern_parts: list[str]) -> bool:
    if len(pattern_parts) == 0:
        return len(path_parts) == 0

    head: str = pattern_parts[0]
    if head == "**":
        if len(pattern_parts) == 1:
            return True
        for idx in range(len(path_parts) + 1):
            if _match_parts(path_parts[idx:], pattern_parts[1:]) is True:
                return True
        return False

    if len(path_parts) == 0:
        return False
    if fnmatch.fnmatchcase(path_parts[0], head) is False:
        return False
    return _match_parts(path_parts[1:], pattern_parts[1:])
