"""Output archive entry writer.

All entries of the assembled archive funnel through :class:`EntryWriter`, which
is the single place that keeps entry names unique. When a proposed name was
already written, the entry is stored under a derived name instead of being
dropped or overwriting the earlier one:

``<name>-DUPLICATE-FILENAME-<n><suffix>``

where ``n`` is a per-writer counter starting at 1 and ``suffix`` is either the
original entry's extension or, with legacy naming, always ``.jar``.
"""

import io
import pathlib
import shutil
import time
import typing
import zipfile

from jar_flattener.manifest import Manifest


MANIFEST_ENTRY_NAME: str = "META-INF/MANIFEST.MF"
DUPLICATE_MARKER: str = "-DUPLICATE-FILENAME-"
LEGACY_DUPLICATE_SUFFIX: str = ".jar"

# Earliest and latest timestamps representable in a zip entry.
DEFAULT_DATE_TIME: tuple[int, int, int, int, int, int] = (1980, 1, 1, 0, 0, 0)
LATEST_DATE_TIME: tuple[int, int, int, int, int, int] = (2107, 12, 31, 23, 59, 58)

_COPY_CHUNK: int = 1024 * 1024


class EntryWriter:
    """Append uniquely named entries to an open output archive.

    :param zip_file: Archive opened for writing. The writer does not close it.
    :param preserve_extension: Keep the original extension on renamed
        entries. When ``False`` every renamed entry ends in ``.jar``.
    """

    def __init__(self, zip_file: zipfile.ZipFile, *, preserve_extension: bool = True) -> None:
        self._zf: zipfile.ZipFile = zip_file
        self._preserve_extension: bool = preserve_extension
        self._counter: int = 0
        self._renamed: int = 0
        self._names: list[str] = []
        self._seen: set[str] = set()

    @property
    def names(self) -> tuple[str, ...]:
        """Entry names written so far, in write order."""

        return tuple(self._names)

    @property
    def renamed(self) -> int:
        """Number of entries stored under a derived name."""

        return self._renamed

    def write(
        self,
        name: str,
        stream: typing.BinaryIO,
        *,
        date_time: tuple[int, int, int, int, int, int] | None = None,
        file_size: int | None = None,
    ) -> str:
        """Write one entry, renaming it if ``name`` is already taken.

        The stream is consumed and closed, whether or not the write succeeds.

        :param name: Proposed entry name.
        :param stream: Readable binary stream with the entry content.
        :param date_time: Entry timestamp; defaults to :data:`DEFAULT_DATE_TIME`.
        :param file_size: Expected content size, when known up front.
        :returns: The entry name actually used.
        """

        try:
            if name.endswith("/") is True:
                return self._write_directory(name, date_time=date_time)

            actual: str = self._unique_name(name)
            info: zipfile.ZipInfo = _zip_info(actual, date_time)
            info.compress_type = zipfile.ZIP_DEFLATED
            # ZipFile.open(info, "w") ignores the archive-level compresslevel.
            info._compresslevel = self._zf.compresslevel
            if file_size is not None:
                info.file_size = file_size

            with self._zf.open(info, "w") as dst:
                shutil.copyfileobj(stream, dst, _COPY_CHUNK)

            self._record(actual)
            if actual != name:
                self._renamed += 1
            return actual
        finally:
            stream.close()

    def write_file(self, path: pathlib.Path, name: str) -> str:
        """Write a file from disk, stamped with its modification time.

        :param path: Source file.
        :param name: Proposed entry name.
        :returns: The entry name actually used.
        :raises OSError: If the file cannot be read.
        """

        st = path.stat()
        lt: time.struct_time = time.localtime(st.st_mtime)
        date_time: tuple[int, int, int, int, int, int] = (
            lt.tm_year,
            lt.tm_mon,
            lt.tm_mday,
            lt.tm_hour,
            lt.tm_min,
            lt.tm_sec,
        )
        if date_time < DEFAULT_DATE_TIME:
            date_time = DEFAULT_DATE_TIME
        elif date_time > LATEST_DATE_TIME:
            date_time = LATEST_DATE_TIME
        return self.write(name, open(path, "rb"), date_time=date_time, file_size=st.st_size)

    def write_manifest(self, manifest: Manifest) -> str:
        """Write ``manifest`` at the standard ``META-INF/MANIFEST.MF`` location.

        :param manifest: Synthesized manifest.
        :returns: The entry name used.
        """

        return self.write(MANIFEST_ENTRY_NAME, io.BytesIO(manifest.to_bytes()))

    def _unique_name(self, name: str) -> str:
        """Return ``name`` or, if taken, the next unused derived name.

        :param name: Proposed entry name.
        :returns: A name not yet written by this writer.
        """

        candidate: str = name
        suffix: str = self._duplicate_suffix(name)
        while candidate in self._seen:
            self._counter += 1
            candidate = f"{name}{DUPLICATE_MARKER}{self._counter}{suffix}"
        return candidate

    def _duplicate_suffix(self, name: str) -> str:
        if self._preserve_extension is False:
            return LEGACY_DUPLICATE_SUFFIX
        return pathlib.PurePosixPath(name).suffix

    def _write_directory(
        self,
        name: str,
        *,
        date_time: tuple[int, int, int, int, int, int] | None,
    ) -> str:
        # Directory entries have no content; a repeat is the same directory.
        if name in self._seen:
            return name

        info: zipfile.ZipInfo = _zip_info(name, date_time)
        info.external_attr = (0o40755 << 16) | 0x10
        self._zf.writestr(info, b"")
        self._record(name)
        return name

    def _record(self, name: str) -> None:
        self._seen.add(name)
        self._names.append(name)


def _zip_info(
    name: str,
    date_time: tuple[int, int, int, int, int, int] | None,
) -> zipfile.ZipInfo:
    """Build a :class:`zipfile.ZipInfo` with a deterministic timestamp."""

    if date_time is None:
        date_time = DEFAULT_DATE_TIME
    info: zipfile.ZipInfo = zipfile.ZipInfo(name, date_time=date_time)
    if name.endswith("/") is False:
        info.external_attr = 0o644 << 16
    return info
