import dataclasses
import pathlib
import stat
import zipfile

import pytest

from escriptize.builder import escriptize, included_apps
from escriptize.errors import (
    AppNotFoundError,
    BadAppNameError,
    EscriptCreationError,
    HeaderConfigError,
    NoMainAppError,
)


LIB: str = "_build/default/lib"


@pytest.fixture
def hello_project(put) -> None:
    put(f"{LIB}/hello/ebin/hello.app", b"{application, hello, []}.")
    put(f"{LIB}/hello/ebin/hello.beam", b"hello-beam")
    put(f"{LIB}/hello/ebin/empty.beam", b"")
    put(f"{LIB}/jsx/ebin/jsx.beam", b"jsx-beam")
    put(f"{LIB}/jsx/ebin/jsx.app", b"not a beam")
    put(f"{LIB}/getopt/ebin/getopt.beam", b"getopt-beam")


def _names(path: pathlib.Path) -> list[str]:
    with zipfile.ZipFile(path) as zf:
        return zf.namelist()


def test_build_single_app(tmp_path: pathlib.Path, hello_project, make_state) -> None:
    state = make_state(deps=["jsx"], settings={"escript_incl_apps": ["getopt"]})

    result = escriptize(state)

    assert result.path == tmp_path / "_build" / "default" / "bin" / "hello"
    assert _names(result.path) == [
        "getopt/",
        "getopt/ebin/",
        "getopt/ebin/getopt.beam",
        "hello/",
        "hello/ebin/",
        "hello/ebin/hello.app",
        "hello/ebin/hello.beam",
        "jsx/",
        "jsx/ebin/",
        "jsx/ebin/jsx.beam",
    ]
    assert [e.path for e in result.entries] == _names(result.path)
    with zipfile.ZipFile(result.path) as zf:
        assert zf.read("jsx/ebin/jsx.beam") == b"jsx-beam"
    assert stat.S_IMODE(result.path.stat().st_mode) & 0o111 == 0o111
    assert result.path.read_bytes().startswith(b"#!/usr/bin/env escript\n%%\n%%! -escript main hello")


def test_build_is_deterministic(hello_project, make_state) -> None:
    state = make_state(deps=["jsx", "getopt"])

    first = escriptize(state).path.read_bytes()
    second = escriptize(state).path.read_bytes()

    assert first == second


def test_empty_file_excluded_but_markers_kept(put, make_state) -> None:
    put(f"{LIB}/hello/ebin/hello.beam", b"b")
    put("priv/data/empty.txt", b"")
    state = make_state(settings={"escript_incl_extra": [["*", "priv"]]})

    result = escriptize(state)

    names = _names(result.path)
    assert "data/" in names
    assert "data/empty.txt" not in names


def test_app_files_shadow_extras(put, make_state) -> None:
    put(f"{LIB}/hello/ebin/hello.beam", b"real")
    put("overrides/hello/ebin/hello.beam", b"shadowed")
    state = make_state(settings={"escript_incl_extra": [["*", "overrides"]]})

    result = escriptize(state)

    with zipfile.ZipFile(result.path) as zf:
        assert zf.read("hello/ebin/hello.beam") == b"real"
    assert _names(result.path).count("hello/ebin/hello.beam") == 1


def test_escript_name_may_include_directories(hello_project, make_state) -> None:
    state = make_state(settings={"escript_name": "tools/hello-cli"})

    result = escriptize(state)

    assert result.path.parent.name == "tools"
    assert result.path.is_file() is True


def test_two_apps_without_main_app(hello_project, make_state) -> None:
    with pytest.raises(NoMainAppError):
        escriptize(make_state(apps=["hello", "jsx"]))


def test_two_apps_with_unknown_main_app(hello_project, make_state) -> None:
    with pytest.raises(AppNotFoundError):
        escriptize(make_state(apps=["hello", "jsx"], settings={"escript_main_app": "nope"}))


def test_two_apps_with_main_app(tmp_path: pathlib.Path, hello_project, make_state) -> None:
    result = escriptize(make_state(apps=["hello", "jsx"], settings={"escript_main_app": "jsx"}))

    assert result.path.name == "jsx"
    assert "jsx/ebin/jsx.app" in _names(result.path)


def test_bad_shebang_fails_before_writing(tmp_path: pathlib.Path, hello_project, make_state) -> None:
    state = make_state(settings={"escript_shebang": "/usr/bin/env escript\n"})

    with pytest.raises(HeaderConfigError):
        escriptize(state)

    assert (tmp_path / "_build" / "default" / "bin").exists() is False


def test_unknown_included_app(tmp_path: pathlib.Path, hello_project, make_state) -> None:
    state = make_state(settings={"escript_incl_apps": ["ghost"]})

    with pytest.raises(BadAppNameError) as excinfo:
        escriptize(state)

    assert excinfo.value.name == "ghost"
    assert (tmp_path / "_build" / "default" / "bin" / "hello").exists() is False


def test_included_apps_is_sorted_union(make_state) -> None:
    state = make_state(deps=["jsx", "cowlib"], settings={"escript_incl_apps": ["jsx", "getopt"]})

    assert included_apps(state) == ["cowlib", "getopt", "jsx"]


def test_same_path_from_app_dependency_and_extras(tmp_path: pathlib.Path, put, make_state) -> None:
    put(f"{LIB}/hello/ebin/hello.beam", b"from-app")
    put("vendor/hello/ebin/hello.beam", b"from-dep")
    put("overrides/hello/ebin/hello.beam", b"from-extra")
    put(f"{LIB}/jsx/ebin/jsx.beam", b"jsx-from-dep")
    put("overrides/jsx/ebin/jsx.beam", b"jsx-from-extra")
    state = make_state(deps=["jsx"], settings={"escript_incl_extra": [["*", "overrides"]]})
    state = dataclasses.replace(
        state,
        code_paths={**state.code_paths, "hello": tmp_path / "vendor" / "hello" / "ebin"},
        settings={**state.settings, "escript_incl_apps": ["hello"]},
    )

    result = escriptize(state)

    names = _names(result.path)
    assert names.count("hello/ebin/hello.beam") == 1
    assert names.count("jsx/ebin/jsx.beam") == 1
    with zipfile.ZipFile(result.path) as zf:
        assert zf.read("hello/ebin/hello.beam") == b"from-app"
        assert zf.read("jsx/ebin/jsx.beam") == b"jsx-from-dep"


def test_output_blocked_by_directory(tmp_path: pathlib.Path, hello_project, make_state) -> None:
    blocker = tmp_path / "_build" / "default" / "bin" / "hello"
    blocker.mkdir(parents=True)

    with pytest.raises(EscriptCreationError) as excinfo:
        escriptize(make_state())

    assert excinfo.value.app_name == "hello"
    assert blocker.is_dir() is True
    assert [p.name for p in blocker.parent.iterdir()] == ["hello"]


def test_temp_file_failure_surfaces_as_creation_error(tmp_path: pathlib.Path, hello_project, make_state, monkeypatch) -> None:
    def denied(output_path: pathlib.Path) -> tuple[int, pathlib.Path]:
        raise PermissionError(13, "Permission denied", str(output_path.parent))

    monkeypatch.setattr("escriptize.archive._open_temp", denied)
    with pytest.raises(EscriptCreationError):
        escriptize(make_state())

    assert (tmp_path / "_build" / "default" / "bin" / "hello").exists() is False
