from __future__ import annotations

import sys
from pathlib import Path

import click
import typer
import typer.main

from . import __version__
from . import commands
from .cli_shared import (
    GlobalOpts,
    OpError,
    UsageError,
    _apply_global_env,
    _bootstrap_env,
    _rich_error,
)
from .utils import InstallMode, JsrPackage

app = typer.Typer(
    name="jsr",
    help="Add, remove and publish JSR packages from npm-compatible projects.",
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"jsr {__version__}")
        raise typer.Exit(code=0)


@app.callback()
def app_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Show additional debugging information"),
    version: bool = typer.Option(False, "--version", "-v", callback=_version_callback, is_eager=True),
) -> None:
    del version
    ctx.obj = {"g": _apply_global_env(verbose=verbose, bin_folder=None)}


def _ctx_global(ctx: typer.Context) -> GlobalOpts:
    if isinstance(ctx.obj, dict) and isinstance(ctx.obj.get("g"), GlobalOpts):
        return ctx.obj["g"]
    return _apply_global_env(verbose=False, bin_folder=None)


def _parse_packages(raw: list[str] | None, *, action: str) -> list[JsrPackage]:
    items = [str(p).strip() for p in (raw or []) if str(p).strip()]
    if not items:
        raise UsageError(f"Missing packages to {action}")
    return [JsrPackage.from_str(p) for p in items]


def _pkg_manager_name(*, npm: bool, yarn: bool, pnpm: bool, bun: bool) -> str | None:
    for name, flag in (("npm", npm), ("yarn", yarn), ("pnpm", pnpm), ("bun", bun)):
        if flag:
            return name
    return None


def _install_mode(*, save_dev: bool, save_optional: bool) -> InstallMode:
    if save_dev:
        return InstallMode.DEV
    if save_optional:
        return InstallMode.OPTIONAL
    return InstallMode.PROD


_ADD_HELP = "Add one or more JSR packages (e.g. @std/encoding@^1)."
_REMOVE_HELP = "Remove one or more JSR packages."


def add(
    ctx: typer.Context,
    packages: list[str] = typer.Argument(None, help="Packages as @<scope>/<name>[@<version>]"),
    save_prod: bool = typer.Option(False, "--save-prod", "-P", help="Package will be added to dependencies (default)"),
    save_dev: bool = typer.Option(False, "--save-dev", "-D", help="Package will be added to devDependencies"),
    save_optional: bool = typer.Option(False, "--save-optional", "-O", help="Package will be added to optionalDependencies"),
    npm: bool = typer.Option(False, "--npm", help="Use npm to add packages"),
    yarn: bool = typer.Option(False, "--yarn", help="Use yarn to add packages"),
    pnpm: bool = typer.Option(False, "--pnpm", help="Use pnpm to add packages"),
    bun: bool = typer.Option(False, "--bun", help="Use bun to add packages"),
) -> None:
    del save_prod
    g = _ctx_global(ctx)
    pkgs = _parse_packages(packages, action="install")
    commands.install(
        Path.cwd(),
        pkgs,
        commands.InstallOptions(
            pkg_manager_name=_pkg_manager_name(npm=npm, yarn=yarn, pnpm=pnpm, bun=bun),
            verbose=g.verbose,
            mode=_install_mode(save_dev=save_dev, save_optional=save_optional),
        ),
    )


def remove(
    ctx: typer.Context,
    packages: list[str] = typer.Argument(None, help="Packages as @<scope>/<name>"),
    npm: bool = typer.Option(False, "--npm", help="Use npm to remove packages"),
    yarn: bool = typer.Option(False, "--yarn", help="Use yarn to remove packages"),
    pnpm: bool = typer.Option(False, "--pnpm", help="Use pnpm to remove packages"),
    bun: bool = typer.Option(False, "--bun", help="Use bun to remove packages"),
) -> None:
    g = _ctx_global(ctx)
    pkgs = _parse_packages(packages, action="remove")
    commands.remove(
        Path.cwd(),
        pkgs,
        commands.BaseOptions(
            pkg_manager_name=_pkg_manager_name(npm=npm, yarn=yarn, pnpm=pnpm, bun=bun),
            verbose=g.verbose,
        ),
    )


app.command("add", help=_ADD_HELP)(add)
app.command("install", help=_ADD_HELP, hidden=True)(add)
app.command("i", help=_ADD_HELP, hidden=True)(add)
app.command("remove", help=_REMOVE_HELP)(remove)
app.command("uninstall", help=_REMOVE_HELP, hidden=True)(remove)
app.command("r", help=_REMOVE_HELP, hidden=True)(remove)


@app.command("publish", help="Publish the package in the current directory to JSR.")
def publish(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Prepare the package for publishing without uploading it"),
    allow_slow_types: bool = typer.Option(
        False,
        "--allow-slow-types",
        help="Allow publishing with slow types",
    ),
    token: str | None = typer.Option(None, "--token", help="The API token to use when publishing"),
    bin_folder: str | None = typer.Option(
        None,
        "--bin-folder",
        hidden=True,
        help="Folder caching the downloaded deno binary",
    ),
) -> None:
    g = _ctx_global(ctx)
    commands.publish(
        Path.cwd(),
        commands.PublishOptions(
            bin_folder=(bin_folder or "").strip() or g.bin_folder,
            dry_run=dry_run,
            allow_slow_types=allow_slow_types,
            token=(token or "").strip() or None,
            verbose=g.verbose,
        ),
    )


# Newer typer releases raise from their own bundled click, whose exception
# classes do not subclass the installed click ones.
_TYPER_CLICK = getattr(typer.main, "click", click)
_CLICK_ERRORS = tuple({click.ClickException, _TYPER_CLICK.ClickException})
_ABORTS = tuple({click.exceptions.Abort, _TYPER_CLICK.Abort})


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        argv = ["--help"]
    try:
        _bootstrap_env()
        result = app(args=argv, prog_name="jsr", standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except _ABORTS:
        _rich_error("aborted")
        return 130
    except _CLICK_ERRORS as e:
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _rich_error(str(e))
        return 2
    except OpError as e:
        _rich_error(str(e))
        return 1
    except OSError as e:
        _rich_error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
