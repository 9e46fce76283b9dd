import pathlib

import pytest

from jar_flattener.errors import ConfigurationError
from jar_flattener.fileset import GlobFileSetMatcher, validate_pattern
from jar_flattener.ports import NativeLibrarySpec


@pytest.fixture
def native_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    root: pathlib.Path = tmp_path / "native"
    for rel in (
        "libfoo.so",
        "libbar.so",
        "readme.txt",
        "linux-x86_64/libnested.so",
        "linux-x86_64/debug/libnested-dbg.so",
        "win/foo.dll",
    ):
        p: pathlib.Path = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(b"x")
    return root


def _rel(root: pathlib.Path, paths: list[pathlib.Path]) -> list[str]:
    return [p.relative_to(root).as_posix() for p in paths]


def test_single_segment_wildcard(native_dir: pathlib.Path) -> None:
    matched: list[pathlib.Path] = GlobFileSetMatcher().match(
        NativeLibrarySpec(directory=native_dir, includes=("*.so",))
    )

    assert _rel(native_dir, matched) == ["libbar.so", "libfoo.so"]


def test_double_star_spans_directories(native_dir: pathlib.Path) -> None:
    matched: list[pathlib.Path] = GlobFileSetMatcher().match(
        NativeLibrarySpec(directory=native_dir, includes=("**/*.so",), excludes=("**/debug/**",))
    )

    assert _rel(native_dir, matched) == ["libbar.so", "libfoo.so", "linux-x86_64/libnested.so"]


def test_empty_includes_select_everything(native_dir: pathlib.Path) -> None:
    matched: list[pathlib.Path] = GlobFileSetMatcher().match(
        NativeLibrarySpec(directory=native_dir, excludes=("*.txt",))
    )

    assert _rel(native_dir, matched) == [
        "libbar.so",
        "libfoo.so",
        "linux-x86_64/debug/libnested-dbg.so",
        "linux-x86_64/libnested.so",
        "win/foo.dll",
    ]


def test_trailing_slash_means_whole_directory(native_dir: pathlib.Path) -> None:
    matched: list[pathlib.Path] = GlobFileSetMatcher().match(
        NativeLibrarySpec(directory=native_dir, includes=("win/",))
    )

    assert _rel(native_dir, matched) == ["win/foo.dll"]


def test_missing_directory_is_configuration_error(tmp_path: pathlib.Path) -> None:
    with pytest.raises(ConfigurationError, match="does not exist"):
        GlobFileSetMatcher().match(NativeLibrarySpec(directory=tmp_path / "nope"))


@pytest.mark.parametrize("pattern", ["", "   ", "/abs/*.so", "../up/*.so", "lib[abc.so"])
def test_malformed_patterns_are_rejected(pattern: str) -> None:
    with pytest.raises(ConfigurationError):
        validate_pattern(pattern)


def test_malformed_pattern_fails_match(native_dir: pathlib.Path) -> None:
    with pytest.raises(ConfigurationError):
        GlobFileSetMatcher().match(NativeLibrarySpec(directory=native_dir, includes=("lib[x.so",)))
