"""Escript archive writer.

The escript is written as ``header + zip``: the three header lines produced by
:class:`~escriptize.header.EscriptHeader` followed by a zip archive whose
member offsets are relative to the start of the zip data (the layout the
escript loader expects).

Output is deterministic: members keep the given order and carry a fixed
timestamp. The file is written to a temporary path next to the output,
made executable and renamed into place, so a failed build never leaves a
partial escript behind.
"""

from collections.abc import Sequence
import io
import logging
import os
import pathlib
import secrets
import stat
import zipfile

from escriptize.collector import Entry
from escriptize.errors import EscriptCreationError, EscriptizeError
from escriptize.header import EscriptHeader


ZIP_EPOCH: tuple[int, int, int, int, int, int] = (1980, 1, 1, 0, 0, 0)
EXEC_BITS: int = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def validate_compresslevel(compresslevel: int) -> None:
    """Validate a zip compression level.

    :param compresslevel: Compression level (0-9).
    :raises EscriptizeError: If the level is out of range.
    """

    if compresslevel < 0 or compresslevel > 9:
        raise EscriptizeError(f"Invalid compresslevel={compresslevel}; expected 0-9.")


def build_archive_bytes(entries: Sequence[Entry], *, compresslevel: int) -> bytes:
    """Zip the entries into bytes.

    :param entries: Archive members, already sorted and deduplicated.
    :param compresslevel: Deflate compression level.
    :returns: Zip archive bytes.
    """

    buf: io.BytesIO = io.BytesIO()
    with zipfile.ZipFile(
        buf,
        "w",
        compression=zipfile.ZIP_DEFLATED,
        compresslevel=compresslevel,
    ) as zf:
        for entry in entries:
            info: zipfile.ZipInfo = zipfile.ZipInfo(entry.path, date_time=ZIP_EPOCH)
            if entry.is_dir_marker is True:
                info.external_attr = ((stat.S_IFDIR | 0o755) << 16) | 0x10
                info.CRC = 0
                info.compress_size = 0
                info.file_size = 0
                zf.mkdir(info)
                continue
            info.external_attr = (stat.S_IFREG | 0o644) << 16
            info.compress_type = zipfile.ZIP_DEFLATED
            zf.writestr(info, entry.content, compresslevel=compresslevel)
    return buf.getvalue()


def write_escript(
    *,
    output_path: pathlib.Path,
    header: EscriptHeader,
    entries: Sequence[Entry],
    app_name: str,
    compresslevel: int = 6,
    logger: logging.Logger | None = None,
) -> None:
    """Write an executable escript.

    :param output_path: Final escript path; parent directories are created.
    :param header: Escript header.
    :param entries: Archive members.
    :param app_name: Main app name (used in error messages).
    :param compresslevel: Deflate compression level.
    :param logger: Optional logger for debug output.
    :raises EscriptCreationError: If the archive cannot be built, written or renamed into place.
    :raises OSError: If the permissions of the new file cannot be updated.
    """

    if logger is None:
        logger = logging.getLogger("escriptize")

    validate_compresslevel(compresslevel)
    try:
        archive: bytes = build_archive_bytes(entries, compresslevel=compresslevel)
    except (ValueError, zipfile.LargeZipFile) as exc:
        raise EscriptCreationError(app_name, exc) from exc

    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"escriptize: archive body {len(archive)} bytes, {len(entries)} members")

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = _open_temp(output_path)
    except OSError as exc:
        raise EscriptCreationError(app_name, exc) from exc

    try:
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(header.render())
                f.write(archive)
        except OSError as exc:
            raise EscriptCreationError(app_name, exc) from exc

        if output_path.is_file() is True:
            tmp_path.chmod(stat.S_IMODE(output_path.stat().st_mode))
        mode: int = stat.S_IMODE(tmp_path.stat().st_mode)
        tmp_path.chmod(mode | EXEC_BITS)

        try:
            tmp_path.replace(output_path)
        except OSError as exc:
            raise EscriptCreationError(app_name, exc) from exc
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _open_temp(output_path: pathlib.Path) -> tuple[int, pathlib.Path]:
    """Create an empty temporary file next to ``output_path``.

    The file is opened with mode ``0o666`` so it gets the same permissions
    under the umask as a freshly written output would.

    :param output_path: Final escript path.
    :returns: Open file descriptor and the temporary path.
    :raises OSError: If the file cannot be created.
    """

    tmp_path: pathlib.Path = output_path.with_name(f".{output_path.name}.{secrets.token_hex(6)}.tmp")
    fd: int = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0), 0o666)
    return fd, tmp_path
