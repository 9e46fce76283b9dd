"""Source enumeration.

Turns the assembler's inputs into the ordered list of files to embed:

1. the primary artifact, under ``main/``;
2. resolved dependencies that have a materialized file, under ``lib/``;
3. declared ``system``-scope dependencies, under ``lib/``;
4. files matched by each native-library spec, under ``binlib/``.

No deduplication happens here; colliding names are resolved by the entry
writer.
"""

from collections.abc import Sequence
from dataclasses import dataclass
import logging
import pathlib

from jar_flattener.errors import ConfigurationError, IOFailure
from jar_flattener.ports import (
    SCOPE_SYSTEM,
    DependencyDescriptor,
    FileSetMatcher,
    NativeLibrarySpec,
)


NAMESPACE_MAIN: str = "main"
NAMESPACE_LIB: str = "lib"
NAMESPACE_BINLIB: str = "binlib"


@dataclass(frozen=True, slots=True)
class SourceFile:
    """A file to embed in the output archive.

    :ivar path: File on disk.
    :ivar namespace: Destination namespace (``main``, ``lib`` or ``binlib``).
    :ivar name: Original file name.
    """

    path: pathlib.Path
    namespace: str
    name: str

    @property
    def entry_name(self) -> str:
        """Proposed entry name in the output archive."""

        return f"{self.namespace}/{self.name}"


def enumerate_sources(
    *,
    primary: pathlib.Path,
    resolved: Sequence[DependencyDescriptor],
    declared: Sequence[DependencyDescriptor],
    native_specs: Sequence[NativeLibrarySpec],
    matcher: FileSetMatcher,
    logger: logging.Logger | None = None,
) -> list[SourceFile]:
    """Build the ordered list of files to embed.

    :param primary: Primary build artifact.
    :param resolved: Resolved dependencies, in resolution order.
    :param declared: Declared dependencies; only ``system`` scope is used.
    :param native_specs: Native-library file-set specs.
    :param matcher: Expands native-library specs into files.
    :param logger: Optional logger for debug output.
    :returns: Source files in write order.
    :raises IOFailure: If the primary artifact or a system dependency is missing.
    :raises ConfigurationError: If a system dependency has no path or a
        native-library spec is invalid.
    """

    if logger is None:
        logger = logging.getLogger("jar_flattener")
    debug: bool = logger.isEnabledFor(logging.DEBUG)

    if primary.is_file() is False:
        raise IOFailure(f"Primary artifact does not exist or is not a file: {primary}")
    out: list[SourceFile] = [_source(primary, NAMESPACE_MAIN)]

    for dep in resolved:
        if dep.file is None or dep.file.is_file() is False:
            if debug is True:
                logger.debug(f"jar-flattener: skipping dependency without a file: {dep.file}")
            continue
        out.append(_source(dep.file, NAMESPACE_LIB))

    for dep in declared:
        if dep.scope != SCOPE_SYSTEM:
            continue
        if dep.file is None:
            raise ConfigurationError("System-scope dependency declared without a path")
        if dep.file.is_file() is False:
            raise IOFailure(f"System-scope dependency does not exist: {dep.file}")
        out.append(_source(dep.file, NAMESPACE_LIB))

    for spec in native_specs:
        matched: list[pathlib.Path] = matcher.match(spec)
        if debug is True:
            logger.debug(f"jar-flattener: native spec {spec.directory} matched {len(matched)} files")
        for path in matched:
            out.append(_source(path, NAMESPACE_BINLIB))

    return out


def _source(path: pathlib.Path, namespace: str) -> SourceFile:
    return SourceFile(path=path, namespace=namespace, name=path.name)
