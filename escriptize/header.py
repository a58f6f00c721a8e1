"""Escript header composition.

An escript starts with three lines: a shebang, a comment line and a line of
emulator arguments. Each configured value must start with its marker; the
marker is stripped here and written back by the archive writer.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from escriptize.errors import HeaderConfigError


SHEBANG_MARKER: str = "#!"
COMMENT_MARKER: str = "%%"
EMU_ARGS_MARKER: str = "%%!"

DEFAULT_SHEBANG: str = "#!/usr/bin/env escript\n"
DEFAULT_COMMENT: str = "%%\n"


@dataclass(frozen=True, slots=True)
class EscriptHeader:
    """Header values with their markers stripped.

    :ivar shebang: Text following ``#!``.
    :ivar comment: Text following ``%%``.
    :ivar emu_args: Text following ``%%!``.
    """

    shebang: str
    comment: str
    emu_args: str

    def render(self) -> bytes:
        """Render the three header lines.

        :returns: UTF-8 bytes, one ``\\n`` per line.
        """

        text: str = (
            f"{SHEBANG_MARKER}{self.shebang}\n"
            f"{COMMENT_MARKER}{self.comment}\n"
            f"{EMU_ARGS_MARKER}{self.emu_args}\n"
        )
        return text.encode("utf-8")


def default_emu_args(app_name: str) -> str:
    return f"%%! -escript main {app_name} -pa {app_name}/{app_name}/ebin\n"


def compose_header(settings: Mapping[str, Any], *, app_name: str) -> EscriptHeader:
    """Build the header from ``escript_shebang``/``escript_comment``/``escript_emu_args``.

    :param settings: Project settings.
    :param app_name: Main app name (used by the default emulator arguments).
    :returns: Validated header.
    :raises HeaderConfigError: If a value is not a string starting with its marker.
    """

    return EscriptHeader(
        shebang=_section(settings, "escript_shebang", SHEBANG_MARKER, DEFAULT_SHEBANG),
        comment=_section(settings, "escript_comment", COMMENT_MARKER, DEFAULT_COMMENT),
        emu_args=_section(settings, "escript_emu_args", EMU_ARGS_MARKER, default_emu_args(app_name)),
    )


def _section(settings: Mapping[str, Any], key: str, marker: str, default: str) -> str:
    value: Any = settings.get(key, default)
    if isinstance(value, str) is False or value.startswith(marker) is False:
        raise HeaderConfigError(key, marker, value)
    return value[len(marker) :].replace("\n", "")
