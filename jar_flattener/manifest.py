"""JAR manifest model and the manifest synthesizer.

The boot template ships a starter manifest as ``boot-manifest.mf``. The output
manifest is that manifest with the caller's overrides (launcher main class,
implementation version) laid over its main section.

Manifest text follows the JAR format:

- ``Name: value`` headers, one per line, CRLF line endings on output.
- Lines longer than 72 bytes continue on the next line after a single space.
- The main section comes first; named sections follow, separated by blank
  lines, each starting with a ``Name`` header.
- Attribute names are case-insensitive.
"""

from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from dataclasses import dataclass, field
import pathlib
import re
import zipfile

from jar_flattener.errors import ConfigurationError, IOFailure, ManifestError


TEMPLATE_MANIFEST_NAME: str = "boot-manifest.mf"

MANIFEST_VERSION: str = "Manifest-Version"
DEFAULT_MANIFEST_VERSION: str = "1.0"
MAIN_CLASS_ATTRIBUTE: str = "One-Jar-Main-Class"
IMPLEMENTATION_VERSION_ATTRIBUTE: str = "Implementation-Version"
SECTION_NAME_ATTRIBUTE: str = "Name"

_MAX_LINE_BYTES: int = 72
_CRLF: bytes = b"\r\n"
_ATTRIBUTE_NAME_RE: re.Pattern[str] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,69}$")


class ManifestAttributes(MutableMapping[str, str]):
    """Ordered attribute mapping with case-insensitive names.

    Replacing an existing attribute keeps its position and adopts the new
    spelling of its name; new attributes are appended.
    """

    def __init__(self, items: Mapping[str, str] | Iterable[tuple[str, str]] | None = None) -> None:
        self._data: dict[str, tuple[str, str]] = {}
        if items is not None:
            self.update(items)

    def __getitem__(self, name: str) -> str:
        return self._data[name.lower()][1]

    def __setitem__(self, name: str, value: str) -> None:
        if _ATTRIBUTE_NAME_RE.match(name) is None:
            raise ManifestError(f"Invalid manifest attribute name: {name!r}")
        if any(c in value for c in ("\r", "\n", "\0")):
            raise ManifestError(f"Manifest attribute {name!r} has a line break or NUL in its value")
        self._data[name.lower()] = (name, value)

    def __delitem__(self, name: str) -> None:
        del self._data[name.lower()]

    def __iter__(self) -> Iterator[str]:
        for name, _ in self._data.values():
            yield name

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._data

    def __repr__(self) -> str:
        return f"ManifestAttributes({dict(self.items())!r})"

    def merged(self, overrides: Mapping[str, str]) -> "ManifestAttributes":
        """Return a copy with ``overrides`` applied; overrides win.

        :param overrides: Attributes to set.
        :returns: New attribute mapping.
        """

        out: ManifestAttributes = ManifestAttributes(self.items())
        out.update(overrides)
        return out


@dataclass(slots=True)
class Manifest:
    """A parsed JAR manifest.

    :ivar main_attributes: Attributes of the main section.
    :ivar sections: Named per-entry sections, keyed by their ``Name`` value.
    """

    main_attributes: ManifestAttributes = field(default_factory=ManifestAttributes)
    sections: dict[str, ManifestAttributes] = field(default_factory=dict)

    @classmethod
    def parse(cls, data: bytes) -> "Manifest":
        """Parse manifest bytes.

        :param data: Raw manifest content (UTF-8).
        :returns: Parsed manifest.
        :raises ManifestError: If the content is not a valid manifest.
        """

        manifest: Manifest = cls()
        blocks: list[list[tuple[str, str]]] = _split_blocks(data)
        if len(blocks) == 0:
            return manifest

        for name, value in blocks[0]:
            manifest.main_attributes[name] = value

        for block in blocks[1:]:
            first_name, section_name = block[0]
            if first_name.lower() != SECTION_NAME_ATTRIBUTE.lower():
                raise ManifestError(
                    f"Manifest section must start with a {SECTION_NAME_ATTRIBUTE!r} header, got {first_name!r}"
                )
            attrs: ManifestAttributes = manifest.sections.setdefault(section_name, ManifestAttributes())
            for name, value in block[1:]:
                attrs[name] = value

        return manifest

    def to_bytes(self) -> bytes:
        """Serialize the manifest.

        ``Manifest-Version`` is always written first, defaulting to ``1.0``.

        :returns: Manifest bytes with CRLF line endings.
        """

        out: bytearray = bytearray()
        version: str = self.main_attributes.get(MANIFEST_VERSION, DEFAULT_MANIFEST_VERSION)
        _write_header(out, MANIFEST_VERSION, version)
        for name, value in self.main_attributes.items():
            if name.lower() == MANIFEST_VERSION.lower():
                continue
            _write_header(out, name, value)
        out += _CRLF

        for section_name, attrs in self.sections.items():
            _write_header(out, SECTION_NAME_ATTRIBUTE, section_name)
            for name, value in attrs.items():
                _write_header(out, name, value)
            out += _CRLF

        return bytes(out)


@dataclass(frozen=True, slots=True)
class ManifestOverrides:
    """Caller-supplied main attributes for the output manifest.

    :ivar implementation_version: Always written as ``Implementation-Version``.
    :ivar main_class: Class the launcher runs; written as ``One-Jar-Main-Class``
        when set.
    """

    implementation_version: str
    main_class: str | None = None

    def as_attributes(self) -> dict[str, str]:
        attrs: dict[str, str] = {}
        if self.main_class is not None:
            attrs[MAIN_CLASS_ATTRIBUTE] = self.main_class
        attrs[IMPLEMENTATION_VERSION_ATTRIBUTE] = self.implementation_version
        return attrs


def build_manifest(template_path: pathlib.Path, overrides: ManifestOverrides) -> Manifest:
    """Read the template's manifest and apply ``overrides`` to its main section.

    :param template_path: Boot template archive.
    :param overrides: Attributes that replace template values of the same name.
    :returns: Manifest for the output archive.
    :raises ConfigurationError: If the template is not an archive or has no manifest.
    :raises IOFailure: If the template cannot be read.
    """

    data: bytes | None = None
    try:
        with zipfile.ZipFile(template_path, "r") as zf:
            for info in zf.infolist():
                if info.filename == TEMPLATE_MANIFEST_NAME:
                    data = zf.read(info)
                    break
    except zipfile.BadZipFile as e:
        raise ConfigurationError(f"Boot template is not a valid archive: {template_path}") from e
    except OSError as e:
        raise IOFailure(f"Failed to read boot template {template_path}: {e}") from e

    if data is None:
        raise ConfigurationError(f"Boot template {template_path} has no {TEMPLATE_MANIFEST_NAME}")

    manifest: Manifest = Manifest.parse(data)
    manifest.main_attributes = manifest.main_attributes.merged(overrides.as_attributes())
    return manifest


def _split_blocks(data: bytes) -> list[list[tuple[str, str]]]:
    """Split manifest bytes into blank-line separated blocks of headers.

    Continuation lines are joined before decoding so a UTF-8 sequence split
    across lines survives.

    :param data: Raw manifest content.
    :returns: Non-empty blocks of ``(name, value)`` pairs.
    :raises ManifestError: On malformed headers or invalid UTF-8.
    """

    lines: list[bytes] = data.replace(b"\r\n", b"\n").replace(b"\r", b"\n").split(b"\n")
    blocks: list[list[tuple[str, str]]] = []
    raw_headers: list[bytearray] = []

    def flush() -> None:
        if len(raw_headers) > 0:
            blocks.append([_decode_header(h) for h in raw_headers])
            raw_headers.clear()

    for lineno, line in enumerate(lines, start=1):
        if len(line) == 0:
            flush()
            continue
        if line.startswith(b" ") is True:
            if len(raw_headers) == 0:
                raise ManifestError(f"Manifest line {lineno}: continuation line without a header")
            raw_headers[-1] += line[1:]
            continue
        raw_headers.append(bytearray(line))
    flush()
    return blocks


def _decode_header(raw: bytearray) -> tuple[str, str]:
    try:
        text: str = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ManifestError("Manifest is not valid UTF-8") from e

    name: str
    value: str
    if ": " in text:
        name, value = text.split(": ", 1)
    elif text.endswith(":") is True:
        name, value = text[:-1], ""
    else:
        raise ManifestError(f"Malformed manifest header: {text!r}")

    if _ATTRIBUTE_NAME_RE.match(name) is None:
        raise ManifestError(f"Invalid manifest attribute name: {name!r}")
    return name, value


def _write_header(out: bytearray, name: str, value: str) -> None:
    """Append one header, wrapped at 72 bytes without splitting UTF-8 sequences.

    :param out: Output buffer.
    :param name: Attribute name.
    :param value: Attribute value.
    """

    raw: bytes = f"{name}: {value}".encode("utf-8")
    start: int = 0
    width: int = _MAX_LINE_BYTES
    while len(raw) - start > width:
        end: int = start + width
        # 0b10xxxxxx marks a UTF-8 continuation byte.
        while end > start + 1 and (raw[end] & 0xC0) == 0x80:
            end -= 1
        out += raw[start:end]
        out += _CRLF
        out += b" "
        start = end
        width = _MAX_LINE_BYTES - 1
    out += raw[start:]
    out += _CRLF
