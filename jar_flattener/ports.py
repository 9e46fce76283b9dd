"""Interfaces to the collaborators the assembler depends on.

Dependency resolution, declared-dependency listing, file-set expansion and
artifact attachment live outside the assembler. Each is a one-method protocol
so the assembler can run against simple list-backed implementations (as the
CLI does) or against test fakes.
"""

from collections.abc import Sequence
from dataclasses import dataclass
import os
import pathlib
import typing

from jar_flattener.errors import ConfigurationError, IOFailure


SCOPE_NORMAL: str = "normal"
SCOPE_SYSTEM: str = "system"


@dataclass(frozen=True, slots=True)
class DependencyDescriptor:
    """One dependency of the project.

    :ivar file: Backing file; ``None`` when nothing was materialized. For a
        ``system`` dependency this is its declared path.
    :ivar scope: ``normal`` or ``system``.
    """

    file: pathlib.Path | None
    scope: str = SCOPE_NORMAL


@dataclass(frozen=True, slots=True)
class NativeLibrarySpec:
    """A directory plus include/exclude patterns selecting native libraries.

    :ivar directory: Base directory the patterns are relative to.
    :ivar includes: Include patterns; empty means everything.
    :ivar excludes: Exclude patterns.
    """

    directory: pathlib.Path
    includes: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()


class DependencyResolver(typing.Protocol):
    """Supplies the resolved runtime dependencies of the project."""

    def resolved_dependencies(self) -> Sequence[DependencyDescriptor]: ...


class DeclaredDependencySource(typing.Protocol):
    """Supplies the dependencies declared in the project configuration."""

    def declared_dependencies(self) -> Sequence[DependencyDescriptor]: ...


class FileSetMatcher(typing.Protocol):
    """Expands a :class:`NativeLibrarySpec` into concrete files."""

    def match(self, spec: NativeLibrarySpec) -> list[pathlib.Path]: ...


class ArtifactAttacher(typing.Protocol):
    """Registers a produced file with the surrounding build."""

    def attach(self, path: pathlib.Path, *, classifier: str, artifact_type: str) -> None: ...


@dataclass(frozen=True, slots=True)
class StaticDependencyResolver:
    """A :class:`DependencyResolver` over a fixed list."""

    dependencies: tuple[DependencyDescriptor, ...] = ()

    def resolved_dependencies(self) -> Sequence[DependencyDescriptor]:
        return self.dependencies


@dataclass(frozen=True, slots=True)
class StaticDeclaredDependencies:
    """A :class:`DeclaredDependencySource` over a fixed list."""

    dependencies: tuple[DependencyDescriptor, ...] = ()

    def declared_dependencies(self) -> Sequence[DependencyDescriptor]:
        return self.dependencies


def read_classpath_file(path: pathlib.Path) -> list[DependencyDescriptor]:
    """Read a classpath listing into resolved dependency descriptors.

    Entries may be separated by ``os.pathsep`` or newlines, which covers both
    ``mvn dependency:build-classpath`` output and one-path-per-line files.
    Blank entries are ignored; order is kept.

    :param path: Classpath file.
    :returns: Descriptors in file order.
    :raises ConfigurationError: If the file does not exist.
    :raises IOFailure: If the file cannot be read.
    """

    if path.is_file() is False:
        raise ConfigurationError(f"Classpath file does not exist: {path}")

    try:
        text: str = path.read_text(encoding="utf-8")
    except OSError as e:
        raise IOFailure(f"Failed to read classpath file {path}: {e}") from e

    out: list[DependencyDescriptor] = []
    for line in text.splitlines():
        for item in line.split(os.pathsep):
            item = item.strip()
            if len(item) == 0:
                continue
            out.append(DependencyDescriptor(file=pathlib.Path(item)))
    return out
