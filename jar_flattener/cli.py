"""Command line interface for jar-flattener."""

import argparse
import logging
import pathlib
import sys

from jar_flattener.attach import JsonArtifactRegistry
from jar_flattener.builder import AssemblyResult, build_one_jar
from jar_flattener.config import (
    DEFAULT_BOOT_VERSION,
    DEFAULT_CLASSIFIER,
    AssemblyConfig,
    parse_native_spec,
    resolve_assembly_config,
)
from jar_flattener.errors import BuildError
from jar_flattener.ports import (
    SCOPE_SYSTEM,
    DependencyDescriptor,
    NativeLibrarySpec,
    StaticDeclaredDependencies,
    StaticDependencyResolver,
    read_classpath_file,
)


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the jar-flattener logger.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("jar_flattener")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def _build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="jar-flattener",
        description="Merge a jar, its dependencies and native libraries into one executable jar.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_build = subparsers.add_parser(
        "build",
        help="Assemble a one-jar archive.",
    )
    p_build.add_argument(
        "--artifact",
        type=pathlib.Path,
        required=True,
        help="Primary build artifact (embedded under main/).",
    )
    p_build.add_argument(
        "--dependency",
        type=pathlib.Path,
        action="append",
        default=[],
        help="Resolved dependency jar (embedded under lib/). Repeatable.",
    )
    p_build.add_argument(
        "--classpath-file",
        type=pathlib.Path,
        default=None,
        help="File listing resolved dependencies, separated by the path separator or newlines.",
    )
    p_build.add_argument(
        "--system-dependency",
        type=pathlib.Path,
        action="append",
        default=[],
        help="System-scope dependency path (embedded under lib/). Repeatable.",
    )
    p_build.add_argument(
        "--binlib",
        type=str,
        action="append",
        default=[],
        help=(
            "Native library file-set as DIR[;include=P1,P2][;exclude=P3] "
            "(embedded under binlib/). Repeatable."
        ),
    )
    p_build.add_argument(
        "-o",
        "--output-dir",
        type=pathlib.Path,
        required=True,
        help="Directory to write the archive to.",
    )
    p_build.add_argument(
        "--final-name",
        type=str,
        default=None,
        help="Project final name; the archive is named <final-name>.one-jar.jar.",
    )
    p_build.add_argument(
        "--filename",
        type=str,
        default=None,
        help="Explicit archive file name (overrides --final-name).",
    )
    p_build.add_argument(
        "--project-version",
        type=str,
        required=True,
        help="Project version (default implementation version).",
    )
    p_build.add_argument(
        "--implementation-version",
        type=str,
        default=None,
        help="Implementation-Version manifest attribute (defaults to --project-version).",
    )
    p_build.add_argument(
        "--main-class",
        type=str,
        default=None,
        help="Class the launcher runs (One-Jar-Main-Class).",
    )
    p_build.add_argument(
        "--boot-version",
        type=str,
        default=DEFAULT_BOOT_VERSION,
        help=f"Boot template version (default {DEFAULT_BOOT_VERSION}).",
    )
    p_build.add_argument(
        "--template-dir",
        type=pathlib.Path,
        action="append",
        default=[],
        help="Directory containing one-jar-boot-<version>.jar templates. Repeatable.",
    )
    p_build.add_argument(
        "--attach",
        action="store_true",
        help="Register the archive in the artifact registry after writing it.",
    )
    p_build.add_argument(
        "--classifier",
        type=str,
        default=DEFAULT_CLASSIFIER,
        help=f"Classifier used with --attach (default {DEFAULT_CLASSIFIER}).",
    )
    p_build.add_argument(
        "--registry",
        type=pathlib.Path,
        default=None,
        help="Artifact registry JSON file used with --attach (default <output-dir>/attached-artifacts.json).",
    )
    p_build.add_argument(
        "--legacy-duplicate-names",
        action="store_true",
        help="Always suffix renamed duplicate entries with .jar instead of keeping their extension.",
    )
    p_build.add_argument(
        "--compresslevel",
        type=int,
        default=None,
        help="Deflate compression level for archive entries (0-9, default: zlib default).",
    )
    p_build.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging.",
    )
    p_build.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the jar-flattener CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    parser: argparse.ArgumentParser = _build_parser()
    ns = parser.parse_args(argv)
    if ns.command == "build":
        logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)
        try:
            _run_build(ns, logger=logger)
        except BuildError as e:
            logger.error(f"jar-flattener: error: {e}")
            return 1
        return 0

    raise AssertionError(f"Unhandled command: {ns.command}")


def _run_build(ns: argparse.Namespace, *, logger: logging.Logger) -> AssemblyResult:
    """Resolve CLI arguments and run the assembler.

    :param ns: Parsed ``build`` arguments.
    :param logger: Configured logger.
    :returns: Result of the run.
    :raises BuildError: If configuration or assembly fails.
    """

    native_specs: list[NativeLibrarySpec] = [parse_native_spec(s) for s in ns.binlib]
    config: AssemblyConfig = resolve_assembly_config(
        output_dir=ns.output_dir,
        final_name=ns.final_name,
        filename=ns.filename,
        project_version=ns.project_version,
        implementation_version=ns.implementation_version,
        main_class=ns.main_class,
        boot_version=ns.boot_version,
        attach_to_build=ns.attach,
        classifier=ns.classifier,
        template_dirs=ns.template_dir,
        native_specs=native_specs,
        preserve_extension=not ns.legacy_duplicate_names,
        compresslevel=ns.compresslevel,
    )

    resolved: list[DependencyDescriptor] = [DependencyDescriptor(file=p) for p in ns.dependency]
    if ns.classpath_file is not None:
        resolved.extend(read_classpath_file(ns.classpath_file))
    declared: list[DependencyDescriptor] = [
        DependencyDescriptor(file=p, scope=SCOPE_SYSTEM) for p in ns.system_dependency
    ]

    registry: JsonArtifactRegistry | None = None
    if config.attach_to_build is True:
        registry_path: pathlib.Path | None = ns.registry
        if registry_path is None:
            registry_path = config.output_dir / "attached-artifacts.json"
        registry = JsonArtifactRegistry(registry_path)

    return build_one_jar(
        config=config,
        primary=ns.artifact,
        resolver=StaticDependencyResolver(tuple(resolved)),
        declared=StaticDeclaredDependencies(tuple(declared)),
        attacher=registry,
        logger=logger,
    )
