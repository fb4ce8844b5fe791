"""Command line helper for using JSR packages from npm-compatible projects.

The command surface is implemented with Typer and Rich; package installs are
delegated to the project's package manager and publishing to a cached deno
binary.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
