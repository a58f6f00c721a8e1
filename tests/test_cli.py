import logging
import pathlib

from escriptize.cli import _log_level, main


def test_build_command(tmp_path: pathlib.Path, put) -> None:
    put("src/hello.app.src", b"{application, hello, []}.")
    put("_build/default/lib/hello/ebin/hello.beam", b"beam")
    config = put("escript.toml", b'escript_comment = "%% generated\\n"\n')

    assert main(["build", "-c", str(config), "-q"]) == 0

    out = tmp_path / "_build" / "default" / "bin" / "hello"
    assert out.read_bytes().split(b"\n")[1] == b"%% generated"


def test_build_command_reports_errors(tmp_path: pathlib.Path, put, capsys) -> None:
    put("apps/a/src/a.app.src")
    put("apps/b/src/b.app.src")
    config = put("escript.toml", b"")

    assert main(["build", "-c", str(config)]) == 1

    err = capsys.readouterr().err
    assert "escriptize: error:" in err
    assert "escript_main_app" in err


def test_missing_config_file(tmp_path: pathlib.Path, capsys) -> None:
    assert main(["build", "-c", str(tmp_path / "absent.toml")]) == 1
    assert "escriptize: error:" in capsys.readouterr().err


def test_log_level_from_flags() -> None:
    assert _log_level(verbose=0, quiet=0) == logging.INFO
    assert _log_level(verbose=2, quiet=0) == logging.DEBUG
    assert _log_level(verbose=1, quiet=1) == logging.WARNING
    assert _log_level(verbose=0, quiet=3) == logging.ERROR
