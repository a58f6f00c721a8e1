"""Error kinds raised by escriptize.

Every error that aborts a build derives from :class:`EscriptizeError` and
formats its own message. I/O errors while reading sources are not wrapped.
"""


class EscriptizeError(RuntimeError):
    """Base class for build failures that are reported to the user."""


class ConfigError(EscriptizeError, ValueError):
    """Raised when ``escript.toml`` holds a value of the wrong shape."""

    def __init__(self, key: str, problem: str) -> None:
        self.key: str = key
        self.problem: str = problem
        super().__init__(f"Invalid configuration value for {key!r}: {problem}")


class NoMainAppError(EscriptizeError):
    """Raised when several project apps exist and none was selected."""

    def __init__(self, app_names: list[str]) -> None:
        self.app_names: list[str] = app_names
        super().__init__(
            f"Multiple project apps ({', '.join(app_names) or 'none found'}) and "
            "escript_main_app is not set in escript.toml"
        )


class AppNotFoundError(EscriptizeError):
    """Raised when ``escript_main_app`` names no project app."""

    def __init__(self, name: str, app_names: list[str]) -> None:
        self.name: str = name
        self.app_names: list[str] = app_names
        super().__init__(
            f"escript_main_app {name!r} is not a project app "
            f"(known: {', '.join(app_names) or 'none'})"
        )


class BadAppNameError(EscriptizeError):
    """Raised when an included app has no known ebin directory."""

    def __init__(self, name: str) -> None:
        self.name: str = name
        super().__init__(f"Failed to get ebin/ directory for escript_incl_app: {name!r}")


class HeaderConfigError(EscriptizeError, ValueError):
    """Raised when a header setting does not start with its marker."""

    def __init__(self, key: str, marker: str, value: object) -> None:
        self.key: str = key
        self.marker: str = marker
        self.value: object = value
        super().__init__(f"{key} must be a string starting with {marker!r}, got {value!r}")


class EscriptCreationError(EscriptizeError):
    """Raised when the escript archive cannot be constructed or written."""

    def __init__(self, app_name: str, cause: BaseException) -> None:
        self.app_name: str = app_name
        self.cause: BaseException = cause
        super().__init__(f"Failed to create {app_name!r} escript: {cause}")
