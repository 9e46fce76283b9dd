"""Assembly configuration.

Resolves raw user-supplied values (CLI arguments, or keyword arguments from a
calling build tool) into a validated :class:`AssemblyConfig`.
"""

from collections.abc import Sequence
from dataclasses import dataclass
import pathlib
import re

from jar_flattener.errors import ConfigurationError
from jar_flattener.fileset import validate_pattern
from jar_flattener.ports import NativeLibrarySpec


DEFAULT_BOOT_VERSION: str = "0.97"
DEFAULT_CLASSIFIER: str = "onejar"
DEFAULT_FILENAME_SUFFIX: str = ".one-jar.jar"


@dataclass(frozen=True, slots=True)
class AssemblyConfig:
    """Validated assembly configuration.

    :ivar output_dir: Directory the archive is written to.
    :ivar filename: Output archive file name.
    :ivar boot_version: Boot template version.
    :ivar implementation_version: Written as ``Implementation-Version``.
    :ivar main_class: Launcher main class, or ``None`` to keep the template's.
    :ivar attach_to_build: Register the archive with the build after writing.
    :ivar classifier: Classifier used when attaching.
    :ivar template_dirs: Directories searched for the boot template.
    :ivar native_specs: Native-library file-sets embedded under ``binlib/``.
    :ivar preserve_extension: Keep original extensions on renamed duplicates.
    :ivar compresslevel: Deflate level (0-9), or ``None`` for the zlib default.
    """

    output_dir: pathlib.Path
    filename: str
    boot_version: str
    implementation_version: str
    main_class: str | None = None
    attach_to_build: bool = False
    classifier: str = DEFAULT_CLASSIFIER
    template_dirs: tuple[pathlib.Path, ...] = ()
    native_specs: tuple[NativeLibrarySpec, ...] = ()
    preserve_extension: bool = True
    compresslevel: int | None = None

    @property
    def output_path(self) -> pathlib.Path:
        return self.output_dir / self.filename


_BOOT_VERSION_RE: re.Pattern[str] = re.compile(r"^\d+(\.\d+)*([._-][0-9A-Za-z]+)*$")
_VERSION_RE: re.Pattern[str] = re.compile(r"^[0-9A-Za-z][0-9A-Za-z._+-]*$")
_MAIN_CLASS_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")
_CLASSIFIER_RE: re.Pattern[str] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def resolve_assembly_config(
    *,
    output_dir: pathlib.Path,
    final_name: str | None,
    filename: str | None,
    project_version: str,
    implementation_version: str | None = None,
    main_class: str | None = None,
    boot_version: str = DEFAULT_BOOT_VERSION,
    attach_to_build: bool = False,
    classifier: str = DEFAULT_CLASSIFIER,
    template_dirs: Sequence[pathlib.Path] = (),
    native_specs: Sequence[NativeLibrarySpec] = (),
    preserve_extension: bool = True,
    compresslevel: int | None = None,
) -> AssemblyConfig:
    """Resolve user-supplied settings into an :class:`AssemblyConfig`.

    :param output_dir: Output directory.
    :param final_name: Project final name; the default file name is
        ``<final_name>.one-jar.jar``.
    :param filename: Explicit output file name (overrides ``final_name``).
    :param project_version: Project version, the default implementation version.
    :param implementation_version: Optional explicit implementation version.
    :param main_class: Optional launcher main class.
    :param boot_version: Boot template version.
    :param attach_to_build: Whether to attach the result to the build.
    :param classifier: Attachment classifier.
    :param template_dirs: Directories searched for the boot template.
    :param native_specs: Native-library file-sets.
    :param preserve_extension: Keep original extensions on renamed duplicates.
    :param compresslevel: Optional deflate level (0-9).
    :returns: Resolved config.
    :raises ConfigurationError: If a value is invalid.
    """

    resolved_filename: str = _resolve_filename(filename=filename, final_name=final_name)

    if _BOOT_VERSION_RE.match(boot_version) is None:
        raise ConfigurationError(f"Invalid boot version {boot_version!r}; expected e.g. '0.97'.")

    impl_version: str = implementation_version if implementation_version is not None else project_version
    if _VERSION_RE.match(impl_version) is None:
        raise ConfigurationError(f"Invalid implementation version {impl_version!r}.")

    if main_class is not None and _MAIN_CLASS_RE.match(main_class) is None:
        raise ConfigurationError(f"Invalid main class {main_class!r}; expected a dotted class name.")

    if _CLASSIFIER_RE.match(classifier) is None:
        raise ConfigurationError(f"Invalid classifier {classifier!r}.")

    if compresslevel is not None and (compresslevel < 0 or compresslevel > 9):
        raise ConfigurationError(f"Invalid compresslevel={compresslevel}; expected 0-9.")

    return AssemblyConfig(
        output_dir=output_dir,
        filename=resolved_filename,
        boot_version=boot_version,
        implementation_version=impl_version,
        main_class=main_class,
        attach_to_build=attach_to_build,
        classifier=classifier,
        template_dirs=tuple(template_dirs),
        native_specs=tuple(native_specs),
        preserve_extension=preserve_extension,
        compresslevel=compresslevel,
    )


def parse_native_spec(text: str) -> NativeLibrarySpec:
    """Parse ``DIR[;include=P1,P2][;exclude=P3]`` into a :class:`NativeLibrarySpec`.

    :param text: Spec text.
    :returns: Parsed spec.
    :raises ConfigurationError: If the text is malformed.
    """

    parts: list[str] = text.split(";")
    directory: str = parts[0].strip()
    if len(directory) == 0:
        raise ConfigurationError(f"Native library spec has no directory: {text!r}")

    includes: list[str] = []
    excludes: list[str] = []
    for part in parts[1:]:
        key, sep, value = part.partition("=")
        key = key.strip()
        if sep == "":
            raise ConfigurationError(f"Expected key=value in native library spec {text!r}, got {part!r}")

        patterns: list[str] = [p.strip() for p in value.split(",")]
        for p in patterns:
            validate_pattern(p)

        if key == "include":
            includes.extend(patterns)
        elif key == "exclude":
            excludes.extend(patterns)
        else:
            raise ConfigurationError(f"Unknown key {key!r} in native library spec {text!r}")

    return NativeLibrarySpec(
        directory=pathlib.Path(directory),
        includes=tuple(includes),
        excludes=tuple(excludes),
    )


def _resolve_filename(*, filename: str | None, final_name: str | None) -> str:
    """Resolve the output archive file name.

    :param filename: Explicit file name.
    :param final_name: Project final name.
    :returns: File name.
    :raises ConfigurationError: If neither is usable.
    """

    name: str
    if filename is not None:
        name = filename
    elif final_name is not None:
        name = f"{final_name}{DEFAULT_FILENAME_SUFFIX}"
    else:
        raise ConfigurationError("Either an output file name or a final name is required.")

    if len(name) == 0 or "/" in name or "\\" in name or name in (".", ".."):
        raise ConfigurationError(f"Invalid output file name {name!r}.")
    return name
