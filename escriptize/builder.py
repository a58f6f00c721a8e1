"""Escript builder.

This module implements the ``escriptize`` build step:

- It picks the project app the escript runs.
- It collects the app's ``ebin/`` plus the beams of every included app
  (``escript_incl_apps`` and the resolved build deps) and any extra files.
- It sorts and deduplicates the entries and writes ``<base_dir>/bin/<name>``
  as a header-prefixed zip archive with execute permissions.
"""

from dataclasses import dataclass
import logging
import pathlib
import time

from escriptize.archive import write_escript
from escriptize.collector import (
    Entry,
    collect_dependency_beams,
    collect_extra_files,
    collect_files,
    dedupe_entries,
)
from escriptize.header import EscriptHeader, compose_header
from escriptize.project import AppInfo, ProjectState, resolve_main_app


@dataclass(frozen=True, slots=True)
class BuildOutput:
    """Result of a build.

    :ivar path: Written escript.
    :ivar entries: Archive members in the order they were written.
    """

    path: pathlib.Path
    entries: tuple[Entry, ...]


def included_apps(state: ProjectState) -> list[str]:
    """Compute the apps whose beams are embedded besides the main app.

    :param state: Project state.
    :returns: Sorted, unique union of ``escript_incl_apps`` and the build deps.
    """

    incl: list[str] = list(state.get("escript_incl_apps", []))
    return sorted(set(incl) | set(state.deps))


def escriptize(
    state: ProjectState,
    *,
    logger: logging.Logger | None = None,
    compresslevel: int = 6,
) -> BuildOutput:
    """Build the escript for a project.

    :param state: Project state.
    :param logger: Optional logger for build progress output.
    :param compresslevel: Deflate compression level of the archive body.
    :returns: The written file and its entries.
    :raises NoMainAppError: If several project apps exist and none is configured.
    :raises AppNotFoundError: If ``escript_main_app`` names no project app.
    :raises HeaderConfigError: If a header setting lacks its marker.
    :raises BadAppNameError: If an included app has no ebin directory.
    :raises EscriptCreationError: If the archive cannot be written.
    :raises OSError: If a source file cannot be read.
    """

    if logger is None:
        logger = logging.getLogger("escriptize")

    t_total0: float = time.perf_counter()
    logger.info("escriptize: building escript...")

    app: AppInfo = resolve_main_app(state.project_apps, state.get("escript_main_app"))
    name: str = state.get("escript_name", app.name)
    output_path: pathlib.Path = state.base_dir / "bin" / name
    header: EscriptHeader = compose_header(state.settings, app_name=app.name)
    logger.info(f"escriptize: app={app.name} output={output_path}")

    incl: list[str] = included_apps(state)
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"escriptize: included apps={incl}")

    t_collect0: float = time.perf_counter()
    app_entries: list[Entry] = collect_files(prefix=f"{app.name}/ebin", pattern="*", base_dir=app.ebin_dir)
    dep_entries: list[Entry] = collect_dependency_beams(incl, code_paths=state.code_paths, logger=logger)
    extra_entries: list[Entry] = collect_extra_files(state.get("escript_incl_extra", []), root=state.root)
    entries: list[Entry] = dedupe_entries(app_entries + dep_entries + extra_entries, logger=logger)
    t_collect1: float = time.perf_counter()
    logger.info(
        f"escriptize: collected {sum(1 for e in entries if e.is_dir_marker is False)} files "
        f"from {len(incl) + 1} apps in {t_collect1 - t_collect0:.2f}s"
    )

    write_escript(
        output_path=output_path,
        header=header,
        entries=entries,
        app_name=app.name,
        compresslevel=compresslevel,
        logger=logger,
    )
    out_size: int = output_path.stat().st_size
    t_total1: float = time.perf_counter()
    logger.info(f"escriptize: wrote {output_path} ({out_size / 1024:.1f} KiB) in {t_total1 - t_total0:.2f}s")

    return BuildOutput(path=output_path, entries=tuple(entries))
