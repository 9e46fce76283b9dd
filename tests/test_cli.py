import json
import os
import pathlib

import pytest

from jar_flattener.cli import main

from conftest import read_zip


def _touch(path: pathlib.Path, data: bytes = b"x") -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def test_build_command(tmp_path: pathlib.Path, template_dir: pathlib.Path) -> None:
    app: pathlib.Path = _touch(tmp_path / "app.jar")
    dep1: pathlib.Path = _touch(tmp_path / "repo" / "dep1.jar")
    dep2: pathlib.Path = _touch(tmp_path / "repo" / "dep2.jar")
    dep3: pathlib.Path = _touch(tmp_path / "repo" / "dep3.jar")
    special: pathlib.Path = _touch(tmp_path / "opt" / "special.jar")
    _touch(tmp_path / "native" / "libfoo.so")
    _touch(tmp_path / "native" / "libfoo.a")
    classpath: pathlib.Path = tmp_path / "classpath.txt"
    classpath.write_text(f"{dep2}{os.pathsep}{dep3}\n", encoding="utf-8")

    code: int = main(
        [
            "build",
            "--artifact",
            str(app),
            "--dependency",
            str(dep1),
            "--classpath-file",
            str(classpath),
            "--system-dependency",
            str(special),
            "--binlib",
            f"{tmp_path / 'native'};include=*.so",
            "--output-dir",
            str(tmp_path / "out"),
            "--final-name",
            "app-1.0",
            "--project-version",
            "1.0",
            "--main-class",
            "com.example.App",
            "--template-dir",
            str(template_dir),
            "-q",
        ]
    )

    assert code == 0
    entries: dict[str, bytes] = read_zip(tmp_path / "out" / "app-1.0.one-jar.jar")
    assert sorted(entries) == [
        "META-INF/MANIFEST.MF",
        "binlib/libfoo.so",
        "boot/",
        "boot/Loader.class",
        "lib/dep1.jar",
        "lib/dep2.jar",
        "lib/dep3.jar",
        "lib/special.jar",
        "main/app.jar",
    ]
    assert b"One-Jar-Main-Class: com.example.App\r\n" in entries["META-INF/MANIFEST.MF"]


def test_build_command_attaches_to_registry(tmp_path: pathlib.Path, template_dir: pathlib.Path) -> None:
    app: pathlib.Path = _touch(tmp_path / "app.jar")

    code: int = main(
        [
            "build",
            "--artifact",
            str(app),
            "-o",
            str(tmp_path / "out"),
            "--filename",
            "bundle.jar",
            "--project-version",
            "2.0",
            "--template-dir",
            str(template_dir),
            "--attach",
            "--classifier",
            "standalone",
            "-q",
        ]
    )

    assert code == 0
    records: list[dict[str, str]] = json.loads(
        (tmp_path / "out" / "attached-artifacts.json").read_text(encoding="utf-8")
    )
    assert records == [
        {
            "file": str((tmp_path / "out" / "bundle.jar").resolve()),
            "classifier": "standalone",
            "type": "jar",
        }
    ]


def test_build_command_reports_errors(
    tmp_path: pathlib.Path,
    template_dir: pathlib.Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    app: pathlib.Path = _touch(tmp_path / "app.jar")

    code: int = main(
        [
            "build",
            "--artifact",
            str(app),
            "-o",
            str(tmp_path / "out"),
            "--final-name",
            "app",
            "--project-version",
            "1.0",
            "--template-dir",
            str(template_dir),
            "--system-dependency",
            str(tmp_path / "missing.jar"),
        ]
    )

    assert code == 1
    assert "missing.jar" in capsys.readouterr().err
    assert not (tmp_path / "out" / "app.one-jar.jar").exists()


def test_build_command_requires_artifact() -> None:
    with pytest.raises(SystemExit):
        main(["build", "-o", "out", "--project-version", "1.0"])


def test_build_command_rejects_out_of_range_compresslevel(
    tmp_path: pathlib.Path,
    template_dir: pathlib.Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    app: pathlib.Path = _touch(tmp_path / "app.jar")

    code: int = main(
        [
            "build",
            "--artifact",
            str(app),
            "-o",
            str(tmp_path / "out"),
            "--final-name",
            "app",
            "--project-version",
            "1.0",
            "--template-dir",
            str(template_dir),
            "--compresslevel",
            "12",
        ]
    )

    assert code == 1
    assert "compresslevel=12" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()
