"""escriptize.

A small build utility that packs a compiled Erlang application and the apps
it depends on into a single, directly executable escript archive.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
