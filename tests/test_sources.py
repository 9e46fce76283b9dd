import pathlib

import pytest

from jar_flattener.errors import ConfigurationError, IOFailure
from jar_flattener.ports import DependencyDescriptor, NativeLibrarySpec
from jar_flattener.sources import SourceFile, enumerate_sources

from conftest import FakeMatcher


def _touch(path: pathlib.Path, data: bytes = b"x") -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def test_sources_are_ordered_main_lib_system_binlib(tmp_path: pathlib.Path) -> None:
    app: pathlib.Path = _touch(tmp_path / "target" / "app.jar")
    lib_a: pathlib.Path = _touch(tmp_path / "repo" / "lib-a.jar")
    special: pathlib.Path = _touch(tmp_path / "opt" / "libs" / "special.jar")
    libfoo: pathlib.Path = _touch(tmp_path / "native" / "libfoo.so")
    native_spec: NativeLibrarySpec = NativeLibrarySpec(directory=tmp_path / "native", includes=("*.so",))
    matcher: FakeMatcher = FakeMatcher({tmp_path / "native": [libfoo]})

    sources: list[SourceFile] = enumerate_sources(
        primary=app,
        resolved=[DependencyDescriptor(file=lib_a)],
        declared=[DependencyDescriptor(file=special, scope="system")],
        native_specs=[native_spec],
        matcher=matcher,
    )

    assert [s.entry_name for s in sources] == [
        "main/app.jar",
        "lib/lib-a.jar",
        "lib/special.jar",
        "binlib/libfoo.so",
    ]
    assert sources[2].path == special
    assert matcher.calls == [native_spec]


def test_unmaterialized_dependencies_are_skipped(tmp_path: pathlib.Path) -> None:
    app: pathlib.Path = _touch(tmp_path / "app.jar")
    (tmp_path / "classes").mkdir()

    sources: list[SourceFile] = enumerate_sources(
        primary=app,
        resolved=[
            DependencyDescriptor(file=None),
            DependencyDescriptor(file=tmp_path / "missing.jar"),
            DependencyDescriptor(file=tmp_path / "classes"),
        ],
        declared=[],
        native_specs=[],
        matcher=FakeMatcher(),
    )

    assert [s.entry_name for s in sources] == ["main/app.jar"]


def test_only_system_scope_declared_dependencies_are_used(tmp_path: pathlib.Path) -> None:
    app: pathlib.Path = _touch(tmp_path / "app.jar")
    sys_a: pathlib.Path = _touch(tmp_path / "sys" / "a.jar")
    sys_b: pathlib.Path = _touch(tmp_path / "sys" / "b.jar")
    normal: pathlib.Path = _touch(tmp_path / "normal.jar")

    sources: list[SourceFile] = enumerate_sources(
        primary=app,
        resolved=[DependencyDescriptor(file=sys_a)],
        declared=[
            DependencyDescriptor(file=sys_b, scope="system"),
            DependencyDescriptor(file=normal, scope="normal"),
            DependencyDescriptor(file=sys_a, scope="system"),
        ],
        native_specs=[],
        matcher=FakeMatcher(),
    )

    # No deduplication against resolved dependencies.
    assert [s.entry_name for s in sources] == ["main/app.jar", "lib/a.jar", "lib/b.jar", "lib/a.jar"]


def test_missing_system_dependency_is_io_failure(tmp_path: pathlib.Path) -> None:
    app: pathlib.Path = _touch(tmp_path / "app.jar")

    with pytest.raises(IOFailure, match="special.jar"):
        enumerate_sources(
            primary=app,
            resolved=[],
            declared=[DependencyDescriptor(file=tmp_path / "opt" / "special.jar", scope="system")],
            native_specs=[],
            matcher=FakeMatcher(),
        )


def test_system_dependency_without_path_is_configuration_error(tmp_path: pathlib.Path) -> None:
    app: pathlib.Path = _touch(tmp_path / "app.jar")

    with pytest.raises(ConfigurationError):
        enumerate_sources(
            primary=app,
            resolved=[],
            declared=[DependencyDescriptor(file=None, scope="system")],
            native_specs=[],
            matcher=FakeMatcher(),
        )


def test_missing_primary_artifact_is_io_failure(tmp_path: pathlib.Path) -> None:
    with pytest.raises(IOFailure):
        enumerate_sources(
            primary=tmp_path / "app.jar",
            resolved=[],
            declared=[],
            native_specs=[],
            matcher=FakeMatcher(),
        )


def test_matcher_order_is_preserved_and_errors_propagate(tmp_path: pathlib.Path) -> None:
    app: pathlib.Path = _touch(tmp_path / "app.jar")
    z: pathlib.Path = _touch(tmp_path / "n" / "z.so")
    a: pathlib.Path = _touch(tmp_path / "n" / "a.so")

    sources: list[SourceFile] = enumerate_sources(
        primary=app,
        resolved=[],
        declared=[],
        native_specs=[NativeLibrarySpec(directory=tmp_path / "n")],
        matcher=FakeMatcher({tmp_path / "n": [z, a]}),
    )
    assert [s.entry_name for s in sources[1:]] == ["binlib/z.so", "binlib/a.so"]

    class FailingMatcher:
        def match(self, spec: NativeLibrarySpec) -> list[pathlib.Path]:
            raise ConfigurationError(f"bad spec {spec.directory}")

    with pytest.raises(ConfigurationError):
        enumerate_sources(
            primary=app,
            resolved=[],
            declared=[],
            native_specs=[NativeLibrarySpec(directory=tmp_path / "n")],
            matcher=FailingMatcher(),
        )


def test_enumeration_is_deterministic(tmp_path: pathlib.Path) -> None:
    app: pathlib.Path = _touch(tmp_path / "app.jar")
    deps: list[DependencyDescriptor] = [
        DependencyDescriptor(file=_touch(tmp_path / "deps" / f"d{i}.jar")) for i in range(5)
    ]
    so: pathlib.Path = _touch(tmp_path / "n" / "x.so")

    def run() -> list[SourceFile]:
        return enumerate_sources(
            primary=app,
            resolved=deps,
            declared=[],
            native_specs=[NativeLibrarySpec(directory=tmp_path / "n")],
            matcher=FakeMatcher({tmp_path / "n": [so]}),
        )

    assert run() == run()
