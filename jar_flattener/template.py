"""Boot template lookup and merging.

A boot template is an archive named ``one-jar-boot-<version>.jar`` that holds
the launcher classes plus a starter manifest (``boot-manifest.mf``). Templates
are looked up in the configured template directories, then in the directories
listed in ``JAR_FLATTENER_TEMPLATE_PATH``.
"""

from collections.abc import Sequence
import logging
import os
import pathlib
import zipfile

from jar_flattener.errors import ConfigurationError
from jar_flattener.manifest import TEMPLATE_MANIFEST_NAME
from jar_flattener.writer import EntryWriter


TEMPLATE_PREFIX: str = "one-jar-boot-"
TEMPLATE_SUFFIX: str = ".jar"
TEMPLATE_PATH_ENV: str = "JAR_FLATTENER_TEMPLATE_PATH"


def template_resource_name(boot_version: str) -> str:
    """Return the template file name for a boot version.

    :param boot_version: Boot template version (e.g. ``0.97``).
    :returns: Template file name.
    """

    return f"{TEMPLATE_PREFIX}{boot_version}{TEMPLATE_SUFFIX}"


def template_search_path(template_dirs: Sequence[pathlib.Path]) -> list[pathlib.Path]:
    """Directories searched for boot templates, in lookup order.

    :param template_dirs: Explicitly configured directories.
    :returns: Configured directories followed by ``JAR_FLATTENER_TEMPLATE_PATH`` entries.
    """

    dirs: list[pathlib.Path] = list(template_dirs)
    env_value: str = os.environ.get(TEMPLATE_PATH_ENV, "")
    for item in env_value.split(os.pathsep):
        if len(item.strip()) > 0:
            dirs.append(pathlib.Path(item.strip()))
    return dirs


def locate_template(boot_version: str, template_dirs: Sequence[pathlib.Path]) -> pathlib.Path:
    """Find the boot template for ``boot_version``.

    :param boot_version: Boot template version.
    :param template_dirs: Explicitly configured template directories.
    :returns: Path to the template archive.
    :raises ConfigurationError: If no template is found.
    """

    name: str = template_resource_name(boot_version)
    searched: list[pathlib.Path] = template_search_path(template_dirs)
    for d in searched:
        candidate: pathlib.Path = d / name
        if candidate.is_file() is True:
            return candidate

    where: str = ", ".join(str(d) for d in searched) if len(searched) > 0 else "(no template directories)"
    raise ConfigurationError(
        f"Boot template {name} not found. Searched: {where}. "
        f"Pass --template-dir or set {TEMPLATE_PATH_ENV}."
    )


def merge_template(
    template_path: pathlib.Path,
    writer: EntryWriter,
    *,
    logger: logging.Logger | None = None,
) -> int:
    """Copy every template entry except its manifest into the output.

    The template is opened afresh and closed before returning, on success or
    failure.

    :param template_path: Boot template archive.
    :param writer: Output entry writer.
    :param logger: Optional logger for debug output.
    :returns: Number of entries forwarded.
    :raises ConfigurationError: If the template is not a valid archive.
    """

    if logger is None:
        logger = logging.getLogger("jar_flattener")
    debug: bool = logger.isEnabledFor(logging.DEBUG)

    forwarded: int = 0
    try:
        with zipfile.ZipFile(template_path, "r") as zf:
            for info in zf.infolist():
                if info.filename == TEMPLATE_MANIFEST_NAME:
                    continue
                actual: str = writer.write(
                    info.filename,
                    zf.open(info, "r"),
                    date_time=info.date_time,
                    file_size=info.file_size,
                )
                if debug is True and actual != info.filename:
                    logger.debug(f"jar-flattener: template entry {info.filename} renamed to {actual}")
                forwarded += 1
    except zipfile.BadZipFile as e:
        raise ConfigurationError(f"Boot template is not a valid archive: {template_path}") from e

    return forwarded
