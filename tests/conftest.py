"""Shared fixtures: fake compiled project trees under ``tmp_path``."""

from collections.abc import Callable, Mapping, Sequence
import logging
import pathlib
from typing import Any

import pytest

from escriptize.project import AppInfo, ProjectState, build_code_paths


@pytest.fixture(autouse=True)
def _reset_escriptize_logger():
    """Undo handler/propagation changes made by the CLI."""
    yield
    logger: logging.Logger = logging.getLogger("escriptize")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def put(tmp_path: pathlib.Path) -> Callable[..., pathlib.Path]:
    """Write a file below ``tmp_path``, creating parent directories."""

    def _put(relpath: str, content: bytes = b"x") -> pathlib.Path:
        path: pathlib.Path = tmp_path / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    return _put


@pytest.fixture
def make_state(tmp_path: pathlib.Path) -> Callable[..., ProjectState]:
    """Build a :class:`ProjectState` over ``tmp_path/_build/default``.

    Call it after the fake ``lib/<app>/ebin`` trees are written.
    """

    def _make(
        *,
        apps: Sequence[str] = ("hello",),
        deps: Sequence[str] = (),
        settings: Mapping[str, Any] | None = None,
    ) -> ProjectState:
        base_dir: pathlib.Path = tmp_path / "_build" / "default"
        infos: list[AppInfo] = [AppInfo(name=n, out_dir=base_dir / "lib" / n) for n in apps]
        return ProjectState(
            root=tmp_path,
            base_dir=base_dir,
            project_apps=tuple(infos),
            deps=tuple(deps),
            code_paths=build_code_paths(project_apps=infos, lib_dirs=[base_dir / "lib"]),
            settings=dict(settings or {}),
        )

    return _make
