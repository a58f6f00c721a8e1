"""Archive entry collection.

Turns directories of compiled output into archive entries:

- :func:`collect_files` reads files matching a pattern and synthesizes the
  directory records some zip readers need.
- :func:`collect_dependency_beams` does the same for every included app,
  keyed through an explicit code path registry.
- :func:`collect_extra_files` handles ``escript_incl_extra``.
- :func:`dedupe_entries` produces the final, sorted entry list.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import fnmatch
import logging
import os
import pathlib

from escriptize.errors import BadAppNameError


BEAM_PATTERN: str = "*.beam"


@dataclass(frozen=True, slots=True)
class Entry:
    """A single archive member.

    :ivar path: Forward-slash member name; directory records end with ``/``.
    :ivar content: File bytes (empty for directory records).
    """

    path: str
    content: bytes

    @property
    def is_dir_marker(self) -> bool:
        return self.path.endswith("/")


def collect_files(*, prefix: str, pattern: str, base_dir: pathlib.Path) -> list[Entry]:
    """Read every file under ``base_dir`` whose relative path matches ``pattern``.

    ``*`` matches across ``/``, so ``*`` selects all nested files and
    ``*.beam`` all nested beams. A ``**/`` segment also matches zero
    directories (``**/*.txt`` includes top-level ``.txt`` files). A missing
    ``base_dir`` yields nothing.

    :param prefix: Archive directory the files are placed under (may be empty).
    :param pattern: Shell-style pattern matched against POSIX relative paths.
    :param base_dir: Directory to search.
    :returns: Directory records and file entries, in walk order.
    :raises OSError: If a matched file cannot be read.
    """

    entries: list[Entry] = []
    for rel in _match_files(base_dir, pattern):
        arcname: str = f"{prefix}/{rel}" if prefix != "" else rel
        content: bytes = (base_dir / rel).read_bytes()
        entries.extend(_dir_markers(arcname))
        entries.append(Entry(path=arcname, content=content))
    return entries


def collect_dependency_beams(
    names: Sequence[str],
    *,
    code_paths: Mapping[str, pathlib.Path],
    logger: logging.Logger | None = None,
) -> list[Entry]:
    """Collect the beam files of every named app.

    :param names: App names, in the order they are collected.
    :param code_paths: App name -> ``ebin/`` directory.
    :param logger: Optional logger for debug output.
    :returns: Entries placed under ``<name>/ebin/``.
    :raises BadAppNameError: On the first name missing from ``code_paths``.
    """

    if logger is None:
        logger = logging.getLogger("escriptize")

    entries: list[Entry] = []
    for name in names:
        ebin: pathlib.Path | None = code_paths.get(name)
        if ebin is None:
            raise BadAppNameError(name)
        found: list[Entry] = collect_files(prefix=f"{name}/ebin", pattern=BEAM_PATTERN, base_dir=ebin)
        if logger.isEnabledFor(logging.DEBUG) is True:
            logger.debug(f"escriptize: {name}: {_count_files(found)} beams from {ebin}")
        entries.extend(found)
    return entries


def collect_extra_files(
    extras: Sequence[Sequence[str]],
    *,
    root: pathlib.Path,
) -> list[Entry]:
    """Collect ``escript_incl_extra`` files.

    :param extras: ``(pattern, directory)`` pairs; relative directories resolve against ``root``.
    :param root: Project root.
    :returns: Entries stored at their path relative to each directory.
    """

    entries: list[Entry] = []
    for pattern, directory in extras:
        entries.extend(collect_files(prefix="", pattern=pattern, base_dir=root / directory))
    return entries


def dedupe_entries(entries: Sequence[Entry], *, logger: logging.Logger | None = None) -> list[Entry]:
    """Sort entries by path, keep the first per path and drop empty data files.

    The sort is stable, so on a collision the entry that came first in
    ``entries`` wins. Directory records are recognized by their trailing
    ``/`` and always kept.

    :param entries: App entries, then dependency entries, then extras.
    :param logger: Optional logger; collisions are reported on it.
    :returns: Final archive entries.
    """

    if logger is None:
        logger = logging.getLogger("escriptize")

    unique: list[Entry] = []
    for entry in sorted(entries, key=lambda e: e.path):
        if len(unique) > 0 and unique[-1].path == entry.path:
            if entry.is_dir_marker is False:
                _report_collision(kept=unique[-1], dropped=entry, logger=logger)
            continue
        unique.append(entry)

    return [e for e in unique if e.is_dir_marker is True or len(e.content) > 0]


def _report_collision(*, kept: Entry, dropped: Entry, logger: logging.Logger) -> None:
    if kept.content != dropped.content:
        logger.warning(f"escriptize: {kept.path} provided more than once; keeping the first copy")
    elif logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"escriptize: identical duplicate {kept.path} skipped")


def _match_files(base_dir: pathlib.Path, pattern: str) -> list[str]:
    """List files below ``base_dir`` matching ``pattern``.

    :param base_dir: Directory to walk.
    :param pattern: Shell-style pattern.
    :returns: Sorted POSIX relative paths.
    """

    if base_dir.is_dir() is False:
        return []

    variants: list[str] = _pattern_variants(pattern)
    matches: list[str] = []
    for root_str, dirs, files in os.walk(base_dir):
        dirs.sort()
        rel_root: pathlib.PurePosixPath = pathlib.PurePosixPath(
            pathlib.Path(root_str).relative_to(base_dir).as_posix()
        )
        for name in sorted(files):
            rel: str = (rel_root / name).as_posix()
            if any(fnmatch.fnmatchcase(rel, p) for p in variants) is True:
                matches.append(rel)
    return matches


def _pattern_variants(pattern: str) -> list[str]:
    """Expand each ``**/`` segment into its one-or-more and zero directory forms.

    ``a/**/b`` gives ``a/**/b`` and ``a/b``.

    :param pattern: Shell-style pattern.
    :returns: Patterns to try with :func:`fnmatch.fnmatchcase`.
    """

    parts: list[str] = pattern.split("**/")
    variants: list[str] = [parts[0]]
    for part in parts[1:]:
        variants = [v + s + part for v in variants for s in ("**/", "")]
    return variants


def _dir_markers(arcname: str) -> list[Entry]:
    """Directory records for every ancestor of ``arcname``.

    ``foo/bar/baz`` gives ``foo/`` and ``foo/bar/``.

    :param arcname: Archive member name of a file.
    :returns: Directory record entries, outermost first.
    """

    parts: list[str] = arcname.split("/")[0:-1]
    markers: list[Entry] = []
    for i in range(1, len(parts) + 1):
        markers.append(Entry(path="/".join(parts[0:i]) + "/", content=b""))
    return markers


def _count_files(entries: Sequence[Entry]) -> int:
    return sum(1 for e in entries if e.is_dir_marker is False)
