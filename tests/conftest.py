import pathlib
import zipfile

import pytest

from jar_flattener.ports import NativeLibrarySpec


TEMPLATE_MANIFEST: bytes = (
    b"Manifest-Version: 1.0\r\n"
    b"Main-Class: com.simontuffs.onejar.Boot\r\n"
    b"Implementation-Version: 0.0\r\n"
    b"Created-By: boot-template\r\n"
    b"\r\n"
)


def make_zip(path: pathlib.Path, entries: dict[str, bytes]) -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path


def read_zip(path: pathlib.Path) -> dict[str, bytes]:
    with zipfile.ZipFile(path, "r") as zf:
        return {info.filename: zf.read(info) for info in zf.infolist()}


class FakeMatcher:
    """Returns fixed files per spec directory and records calls."""

    def __init__(self, results: dict[pathlib.Path, list[pathlib.Path]] | None = None) -> None:
        self.results: dict[pathlib.Path, list[pathlib.Path]] = results or {}
        self.calls: list[NativeLibrarySpec] = []

    def match(self, spec: NativeLibrarySpec) -> list[pathlib.Path]:
        self.calls.append(spec)
        return list(self.results.get(spec.directory, []))


class RecordingAttacher:
    def __init__(self, fail: Exception | None = None) -> None:
        self.fail: Exception | None = fail
        self.attached: list[tuple[pathlib.Path, str, str]] = []

    def attach(self, path: pathlib.Path, *, classifier: str, artifact_type: str) -> None:
        if self.fail is not None:
            raise self.fail
        self.attached.append((path, classifier, artifact_type))


@pytest.fixture
def template_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    d: pathlib.Path = tmp_path / "templates"
    make_zip(
        d / "one-jar-boot-0.97.jar",
        {
            "boot-manifest.mf": TEMPLATE_MANIFEST,
            "boot/": b"",
            "boot/Loader.class": b"\xca\xfe\xba\xbe loader",
        },
    )
    return d


@pytest.fixture(autouse=True)
def _no_template_path_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("JAR_FLATTENER_TEMPLATE_PATH", raising=False)
