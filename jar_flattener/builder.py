"""One-jar assembler.

This module sequences the merge of all inputs into one executable archive:

- It enumerates the files to embed (primary artifact, dependencies, system
  dependencies, native libraries) before touching the output.
- It synthesizes the output manifest from the boot template's manifest.
- It writes the manifest, then ``main/``, ``lib/`` and ``binlib/`` entries,
  then every non-manifest template entry, into a temporary file next to the
  output, and moves it into place once the archive is closed.
- Optionally, it attaches the finished archive to the build.

On any failure the temporary file is removed and the original error surfaces
as a :class:`~jar_flattener.errors.BuildError`.
"""

from collections.abc import Sequence
from dataclasses import dataclass
import enum
import logging
import pathlib
import time
import zipfile

from jar_flattener.config import AssemblyConfig
from jar_flattener.errors import AttachmentFailure, BuildError, ConfigurationError, IOFailure
from jar_flattener.fileset import GlobFileSetMatcher
from jar_flattener.manifest import Manifest, ManifestOverrides, build_manifest
from jar_flattener.ports import (
    ArtifactAttacher,
    DeclaredDependencySource,
    DependencyResolver,
    FileSetMatcher,
    StaticDeclaredDependencies,
    StaticDependencyResolver,
)
from jar_flattener.sources import (
    NAMESPACE_BINLIB,
    NAMESPACE_LIB,
    NAMESPACE_MAIN,
    SourceFile,
    enumerate_sources,
)
from jar_flattener.template import locate_template, merge_template
from jar_flattener.writer import EntryWriter


ARTIFACT_TYPE: str = "jar"


class AssemblyState(enum.Enum):
    """Stages of one assembly run, in execution order."""

    INIT = "init"
    MANIFEST_BUILT = "manifest_built"
    ARCHIVE_OPEN = "archive_open"
    MAIN_WRITTEN = "main_written"
    DEPENDENCIES_WRITTEN = "dependencies_written"
    NATIVE_WRITTEN = "native_written"
    TEMPLATE_MERGED = "template_merged"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class AssemblyResult:
    """Outcome of a successful run.

    :ivar output_path: The written archive.
    :ivar entries: Entry names, in write order.
    :ivar renamed: Number of entries stored under a derived name.
    :ivar attached: Whether the archive was attached to the build.
    """

    output_path: pathlib.Path
    entries: tuple[str, ...]
    renamed: int
    attached: bool


class Assembler:
    """Assemble one archive from a primary artifact and its collaborators' inputs.

    An instance performs a single run; each run gets its own entry writer and
    therefore its own duplicate counter.

    :param config: Resolved assembly configuration.
    :param primary: Primary build artifact.
    :param resolver: Supplies resolved dependencies.
    :param declared: Supplies declared dependencies (``system`` scope is used).
    :param matcher: Expands native-library specs.
    :param attacher: Registers the result when ``config.attach_to_build`` is set.
    :param logger: Optional logger for progress output.
    """

    def __init__(
        self,
        config: AssemblyConfig,
        *,
        primary: pathlib.Path,
        resolver: DependencyResolver,
        declared: DeclaredDependencySource,
        matcher: FileSetMatcher,
        attacher: ArtifactAttacher | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if logger is None:
            logger = logging.getLogger("jar_flattener")

        self._config: AssemblyConfig = config
        self._primary: pathlib.Path = primary
        self._resolver: DependencyResolver = resolver
        self._declared: DeclaredDependencySource = declared
        self._matcher: FileSetMatcher = matcher
        self._attacher: ArtifactAttacher | None = attacher
        self._logger: logging.Logger = logger
        self._state: AssemblyState = AssemblyState.INIT

    @property
    def state(self) -> AssemblyState:
        return self._state

    def run(self) -> AssemblyResult:
        """Run the assembly.

        :returns: Result of the run.
        :raises BuildError: If any stage fails; the state becomes ``FAILED``.
        """

        if self._state is not AssemblyState.INIT:
            raise BuildError(f"Assembler already ran (state={self._state.value})")

        try:
            return self._run()
        except BuildError:
            self._advance(AssemblyState.FAILED)
            raise
        except (OSError, zipfile.LargeZipFile) as e:
            self._advance(AssemblyState.FAILED)
            raise IOFailure(f"Failed to assemble {self._config.output_path}: {e}") from e
        except Exception as e:
            # zipfile rejects names it cannot encode and values outside the format's range.
            self._advance(AssemblyState.FAILED)
            raise BuildError(
                f"Failed to assemble {self._config.output_path}: {type(e).__name__}: {e}"
            ) from e

    def _run(self) -> AssemblyResult:
        config: AssemblyConfig = self._config
        logger: logging.Logger = self._logger
        output_path: pathlib.Path = config.output_path

        if config.attach_to_build is True and self._attacher is None:
            raise ConfigurationError("Attaching to the build was requested but no attacher is configured.")

        t_total0: float = time.perf_counter()
        logger.info(f"jar-flattener: artifact={self._primary}")
        logger.info(f"jar-flattener: output={output_path}")

        template_path: pathlib.Path = locate_template(config.boot_version, config.template_dirs)
        logger.info(f"jar-flattener: boot template={template_path}")

        sources: list[SourceFile] = enumerate_sources(
            primary=self._primary,
            resolved=self._resolver.resolved_dependencies(),
            declared=self._declared.declared_dependencies(),
            native_specs=config.native_specs,
            matcher=self._matcher,
            logger=logger,
        )
        logger.info(f"jar-flattener: {len(sources)} files to embed")

        manifest: Manifest = build_manifest(
            template_path,
            ManifestOverrides(
                implementation_version=config.implementation_version,
                main_class=config.main_class,
            ),
        )
        self._advance(AssemblyState.MANIFEST_BUILT)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path: pathlib.Path = output_path.with_name(output_path.name + ".tmp")
        t_write0: float = time.perf_counter()
        try:
            writer: EntryWriter = self._write_archive(
                tmp_path=tmp_path,
                manifest=manifest,
                sources=sources,
                template_path=template_path,
            )
            tmp_path.replace(output_path)
        except BaseException:
            _discard(tmp_path, logger=logger)
            raise
        t_write1: float = time.perf_counter()
        self._advance(AssemblyState.CLOSED)

        out_size: int = output_path.stat().st_size
        logger.info(
            f"jar-flattener: wrote {output_path} ({len(writer.names)} entries, "
            f"{out_size / (1024 * 1024):.1f} MiB) in {t_write1 - t_write0:.2f}s"
        )
        if writer.renamed > 0:
            logger.warning(f"jar-flattener: {writer.renamed} duplicate entries were renamed")

        attached: bool = False
        if config.attach_to_build is True and self._attacher is not None:
            self._attach(self._attacher, output_path)
            attached = True

        t_total1: float = time.perf_counter()
        logger.info(f"jar-flattener: done in {t_total1 - t_total0:.2f}s")

        return AssemblyResult(
            output_path=output_path,
            entries=writer.names,
            renamed=writer.renamed,
            attached=attached,
        )

    def _write_archive(
        self,
        *,
        tmp_path: pathlib.Path,
        manifest: Manifest,
        sources: Sequence[SourceFile],
        template_path: pathlib.Path,
    ) -> EntryWriter:
        """Write all entries to ``tmp_path`` and close it.

        :param tmp_path: Temporary output file.
        :param manifest: Synthesized manifest.
        :param sources: Enumerated source files.
        :param template_path: Boot template archive.
        :returns: The writer used, for its entry bookkeeping.
        """

        zf: zipfile.ZipFile = zipfile.ZipFile(
            tmp_path,
            "w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=self._config.compresslevel,
        )
        try:
            self._advance(AssemblyState.ARCHIVE_OPEN)
            writer: EntryWriter = EntryWriter(zf, preserve_extension=self._config.preserve_extension)
            writer.write_manifest(manifest)

            self._write_sources(writer, sources, NAMESPACE_MAIN)
            self._advance(AssemblyState.MAIN_WRITTEN)
            self._write_sources(writer, sources, NAMESPACE_LIB)
            self._advance(AssemblyState.DEPENDENCIES_WRITTEN)
            self._write_sources(writer, sources, NAMESPACE_BINLIB)
            self._advance(AssemblyState.NATIVE_WRITTEN)

            forwarded: int = merge_template(template_path, writer, logger=self._logger)
            self._logger.info(f"jar-flattener: merged {forwarded} boot template entries")
            self._advance(AssemblyState.TEMPLATE_MERGED)
        except BaseException:
            _close_quietly(zf, logger=self._logger)
            raise

        zf.close()
        return writer

    def _write_sources(self, writer: EntryWriter, sources: Sequence[SourceFile], namespace: str) -> None:
        debug: bool = self._logger.isEnabledFor(logging.DEBUG)
        count: int = 0
        for src in sources:
            if src.namespace != namespace:
                continue
            actual: str = writer.write_file(src.path, src.entry_name)
            count += 1
            if debug is True:
                msg: str = f"jar-flattener: {src.path} -> {actual}"
                if actual != src.entry_name:
                    msg += " (renamed duplicate)"
                self._logger.debug(msg)
        self._logger.info(f"jar-flattener: wrote {count} {namespace}/ entries")

    def _attach(self, attacher: ArtifactAttacher, output_path: pathlib.Path) -> None:
        """Register the output with the build.

        :param attacher: Configured attacher.
        :param output_path: Finished archive.
        :raises AttachmentFailure: If the attacher fails.
        """

        classifier: str = self._config.classifier
        try:
            attacher.attach(output_path, classifier=classifier, artifact_type=ARTIFACT_TYPE)
        except AttachmentFailure:
            raise
        except Exception as e:
            raise AttachmentFailure(f"Failed to attach {output_path} (classifier={classifier}): {e}") from e
        self._logger.info(f"jar-flattener: attached {output_path.name} with classifier {classifier}")

    def _advance(self, state: AssemblyState) -> None:
        if self._logger.isEnabledFor(logging.DEBUG) is True:
            self._logger.debug(f"jar-flattener: state {self._state.value} -> {state.value}")
        self._state = state


def build_one_jar(
    *,
    config: AssemblyConfig,
    primary: pathlib.Path,
    resolver: DependencyResolver | None = None,
    declared: DeclaredDependencySource | None = None,
    matcher: FileSetMatcher | None = None,
    attacher: ArtifactAttacher | None = None,
    logger: logging.Logger | None = None,
) -> AssemblyResult:
    """Assemble a one-jar archive.

    :param config: Resolved assembly configuration.
    :param primary: Primary build artifact.
    :param resolver: Resolved dependencies; defaults to none.
    :param declared: Declared dependencies; defaults to none.
    :param matcher: File-set matcher; defaults to :class:`GlobFileSetMatcher`.
    :param attacher: Attacher used when ``config.attach_to_build`` is set.
    :param logger: Optional logger for progress output.
    :returns: Result of the run.
    :raises BuildError: If assembly fails.
    """

    assembler: Assembler = Assembler(
        config,
        primary=primary,
        resolver=resolver if resolver is not None else StaticDependencyResolver(),
        declared=declared if declared is not None else StaticDeclaredDependencies(),
        matcher=matcher if matcher is not None else GlobFileSetMatcher(),
        attacher=attacher,
        logger=logger,
    )
    return assembler.run()


def _close_quietly(zf: zipfile.ZipFile, *, logger: logging.Logger) -> None:
    # Cleanup after a failure must not mask the original error.
    try:
        zf.close()
    except Exception as e:
        logger.debug(f"jar-flattener: ignoring error while closing output: {e}")


def _discard(path: pathlib.Path, *, logger: logging.Logger) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.debug(f"jar-flattener: ignoring error while removing {path}: {e}")
