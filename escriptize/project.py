"""Project state helpers.

Everything a build reads comes from a :class:`ProjectState`:

- the project apps (name + output directory) built upstream,
- the names of the resolved build dependencies,
- an explicit code path registry mapping an app name to its ``ebin/`` dir,
- an opaque settings mapping (the top-level keys of ``escript.toml``).

The state is normally loaded from ``escript.toml`` with :func:`load_project`,
but tests and embedders can construct it directly.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import pathlib
import tomllib
from typing import Any

from escriptize.errors import AppNotFoundError, ConfigError, NoMainAppError


DEFAULT_CONFIG_NAME: str = "escript.toml"
DEFAULT_BASE_DIR: str = "_build/default"


@dataclass(frozen=True, slots=True)
class AppInfo:
    """A compiled application.

    :ivar name: Application name.
    :ivar out_dir: Output directory holding the app's ``ebin/``.
    """

    name: str
    out_dir: pathlib.Path

    @property
    def ebin_dir(self) -> pathlib.Path:
        return self.out_dir / "ebin"


@dataclass(frozen=True, slots=True)
class ProjectState:
    """Inputs of a single build invocation.

    :ivar root: Project root directory (relative paths resolve against it).
    :ivar base_dir: Build profile directory; the escript lands in ``bin/`` below it.
    :ivar project_apps: Apps owned by the project.
    :ivar deps: Names of the resolved build dependencies.
    :ivar code_paths: App name -> ``ebin/`` directory.
    :ivar settings: Opaque key/value configuration.
    """

    root: pathlib.Path
    base_dir: pathlib.Path
    project_apps: tuple[AppInfo, ...] = ()
    deps: tuple[str, ...] = ()
    code_paths: Mapping[str, pathlib.Path] = field(default_factory=dict)
    settings: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a setting.

        :param key: Setting name (e.g. ``escript_name``).
        :param default: Value returned when the key is unset.
        :returns: Configured value or ``default``.
        """

        return self.settings.get(key, default)


def resolve_main_app(apps: Sequence[AppInfo], main_app_name: str | None) -> AppInfo:
    """Pick the application the escript is built for.

    :param apps: Project apps.
    :param main_app_name: Configured ``escript_main_app`` (or ``None``).
    :returns: The chosen app.
    :raises NoMainAppError: If the choice is ambiguous and nothing is configured.
    :raises AppNotFoundError: If the configured name matches no project app.
    """

    if len(apps) == 1:
        return apps[0]

    names: list[str] = [app.name for app in apps]
    if main_app_name is None:
        raise NoMainAppError(names)

    for app in apps:
        if app.name == main_app_name:
            return app
    raise AppNotFoundError(main_app_name, names)


def build_code_paths(
    *,
    project_apps: Sequence[AppInfo],
    lib_dirs: Sequence[pathlib.Path],
) -> dict[str, pathlib.Path]:
    """Build the app name -> ``ebin/`` registry.

    Project apps are registered first; for library roots the first root that
    provides a name wins.

    :param project_apps: Project apps.
    :param lib_dirs: Library roots whose children are app directories.
    :returns: Code path registry.
    """

    code_paths: dict[str, pathlib.Path] = {}
    for app in project_apps:
        code_paths.setdefault(app.name, app.ebin_dir)

    for lib_dir in lib_dirs:
        if lib_dir.is_dir() is False:
            continue
        for child in sorted(lib_dir.iterdir()):
            ebin: pathlib.Path = child / "ebin"
            if ebin.is_dir() is True:
                code_paths.setdefault(child.name, ebin)
    return code_paths


def discover_app_names(root: pathlib.Path) -> list[str]:
    """Find project apps from their ``.app.src`` resource files.

    Looks at ``src/<name>.app.src`` and ``apps/*/src/<name>.app.src``.

    :param root: Project root.
    :returns: Sorted app names.
    """

    suffix: str = ".app.src"
    names: set[str] = set()
    candidates: list[pathlib.Path] = [
        *root.glob("src/*.app.src"),
        *root.glob("apps/*/src/*.app.src"),
    ]
    for p in candidates:
        names.add(p.name[0 : -len(suffix)])
    return sorted(names)


def load_project(config_path: pathlib.Path) -> ProjectState:
    """Load a :class:`ProjectState` from ``escript.toml``.

    :param config_path: Path to the TOML configuration.
    :returns: Project state rooted at the config file's directory.
    :raises ConfigError: If a value has the wrong type.
    :raises OSError: If the file cannot be read.
    """

    with open(config_path, "rb") as f:
        try:
            data: dict[str, Any] = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(str(config_path), str(exc)) from exc

    root: pathlib.Path = config_path.resolve().parent
    project: Any = data.pop("project", {})
    if isinstance(project, dict) is False:
        raise ConfigError("project", "expected a table")

    base_dir: pathlib.Path = root / _get_str(project, "project.base_dir", "base_dir", DEFAULT_BASE_DIR)

    apps: list[AppInfo]
    if "apps" in project:
        apps = _parse_apps(project["apps"], root=root, base_dir=base_dir)
    else:
        apps = [AppInfo(name=n, out_dir=base_dir / "lib" / n) for n in discover_app_names(root)]

    deps: list[str] = _get_str_list(project, "project.deps", "deps", [])
    lib_dirs: list[pathlib.Path]
    if "lib_dirs" in project:
        lib_dirs = [root / d for d in _get_str_list(project, "project.lib_dirs", "lib_dirs", [])]
    else:
        lib_dirs = [base_dir / "lib"]

    _validate_settings(data)

    return ProjectState(
        root=root,
        base_dir=base_dir,
        project_apps=tuple(apps),
        deps=tuple(deps),
        code_paths=build_code_paths(project_apps=apps, lib_dirs=lib_dirs),
        settings=data,
    )


def _parse_apps(value: Any, *, root: pathlib.Path, base_dir: pathlib.Path) -> list[AppInfo]:
    """Parse the ``project.apps`` array.

    :param value: Raw TOML value.
    :param root: Project root.
    :param base_dir: Build profile directory.
    :returns: Parsed apps.
    :raises ConfigError: If an item is neither a name nor a ``{name, dir}`` table.
    """

    if isinstance(value, list) is False:
        raise ConfigError("project.apps", "expected an array")

    apps: list[AppInfo] = []
    for item in value:
        if isinstance(item, str) is True:
            apps.append(AppInfo(name=item, out_dir=base_dir / "lib" / item))
            continue
        if isinstance(item, dict) is True and isinstance(item.get("name"), str) is True:
            name: str = item["name"]
            if "dir" not in item:
                apps.append(AppInfo(name=name, out_dir=base_dir / "lib" / name))
                continue
            out_dir: Any = item["dir"]
            if isinstance(out_dir, str) is False:
                raise ConfigError("project.apps", f"dir of {name!r} must be a string")
            apps.append(AppInfo(name=name, out_dir=root / out_dir))
            continue
        raise ConfigError("project.apps", f"unsupported item {item!r}")
    return apps


def _validate_settings(settings: Mapping[str, Any]) -> None:
    """Type-check the known ``escript_*`` settings.

    Header settings are checked by the header composer.

    :param settings: Top-level configuration keys.
    :raises ConfigError: On the first bad value.
    """

    for key in ("escript_main_app", "escript_name"):
        if key in settings and isinstance(settings[key], str) is False:
            raise ConfigError(key, "expected a string")

    _get_str_list(settings, "escript_incl_apps", "escript_incl_apps", [])

    extra: Any = settings.get("escript_incl_extra", [])
    if isinstance(extra, list) is False:
        raise ConfigError("escript_incl_extra", "expected an array of [pattern, directory] pairs")
    for pair in extra:
        if (
            isinstance(pair, list) is False
            or len(pair) != 2
            or all(isinstance(v, str) for v in pair) is False
        ):
            raise ConfigError("escript_incl_extra", f"expected [pattern, directory], got {pair!r}")


def _get_str(table: Mapping[str, Any], label: str, key: str, default: str) -> str:
    value: Any = table.get(key, default)
    if isinstance(value, str) is False:
        raise ConfigError(label, "expected a string")
    return value


def _get_str_list(table: Mapping[str, Any], label: str, key: str, default: list[str]) -> list[str]:
    value: Any = table.get(key, default)
    if isinstance(value, list) is False or all(isinstance(v, str) for v in value) is False:
        raise ConfigError(label, "expected an array of strings")
    return list(value)
