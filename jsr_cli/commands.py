from __future__ import annotations

import re
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from rich.markup import escape

from .cli_shared import _console, _eprint
from .download import deno_binary_name, download_deno, get_deno_download_url
from .pkg_manager import get_pkg_manager
from .utils import InstallMode, JsrPackage, exec_cmd, file_exists

NPMRC_FILE = ".npmrc"
BUNFIG_FILE = "bunfig.toml"
JSR_NPMRC = "@jsr:registry=https://npm.jsr.io/\n"
JSR_BUNFIG = '[install.scopes]\n"@jsr" = "https://npm.jsr.io/"\n'

# Matches an existing "@jsr" entry in any table. Older releases tested for a
# placeholder "@myorg1" scope here, which never matched what gets written.
_BUNFIG_JSR_SCOPE_RE = re.compile(r'^"@jsr"\s+=', re.MULTILINE)

PUBLISH_BASE_ARGS = (
    "publish",
    "--unstable-bare-node-builtins",
    "--unstable-sloppy-imports",
)


@dataclass(frozen=True)
class BaseOptions:
    pkg_manager_name: str | None = None
    verbose: bool = False


@dataclass(frozen=True)
class InstallOptions(BaseOptions):
    mode: InstallMode = InstallMode.PROD


@dataclass(frozen=True)
class PublishOptions:
    bin_folder: str
    dry_run: bool = False
    allow_slow_types: bool = False
    token: str | None = None
    verbose: bool = False


def wrap_with_status(msg: str, fn: Callable[[], None]) -> None:
    console = _console()
    console.print(f"{escape(msg)}...", end="")
    try:
        fn()
    except BaseException:
        console.print("[red]error[/red]")
        raise
    console.print("[green]ok[/green]")


def _append_block(content: str, block: str) -> str:
    if content and not content.endswith("\n"):
        content += "\n"
    return content + block


def _ensure_config(path: Path, block: str, is_present: Callable[[str], bool]) -> None:
    msg = f"Setting up {path.name}"
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        wrap_with_status(msg, lambda: path.write_text(block, encoding="utf-8"))
        return
    if is_present(content):
        return
    updated = _append_block(content, block)
    wrap_with_status(msg, lambda: path.write_text(updated, encoding="utf-8"))


def _npmrc_has_registry(content: str) -> bool:
    return JSR_NPMRC.strip() in (line.strip() for line in content.splitlines())


def setup_npmrc(directory: Path) -> None:
    _ensure_config(Path(directory) / NPMRC_FILE, JSR_NPMRC, _npmrc_has_registry)


def setup_bunfig_toml(directory: Path) -> None:
    _ensure_config(
        Path(directory) / BUNFIG_FILE,
        JSR_BUNFIG,
        lambda content: _BUNFIG_JSR_SCOPE_RE.search(content) is not None,
    )


def _package_list(packages: Sequence[JsrPackage]) -> str:
    return escape(", ".join(str(pkg) for pkg in packages))


def install(cwd: Path, packages: Sequence[JsrPackage], options: InstallOptions) -> None:
    pkg_manager = get_pkg_manager(cwd, options.pkg_manager_name, verbose=options.verbose)
    if options.verbose:
        _eprint(f"using {pkg_manager!r}")

    if pkg_manager.needs_alternate_config:
        setup_bunfig_toml(pkg_manager.cwd)
    else:
        setup_npmrc(pkg_manager.cwd)

    _console().print(f"Installing [cyan]{_package_list(packages)}[/cyan]...")
    pkg_manager.install(packages, options.mode)


def remove(cwd: Path, packages: Sequence[JsrPackage], options: BaseOptions) -> None:
    pkg_manager = get_pkg_manager(cwd, options.pkg_manager_name, verbose=options.verbose)
    if options.verbose:
        _eprint(f"using {pkg_manager!r}")
    _console().print(f"Removing [cyan]{_package_list(packages)}[/cyan]...")
    pkg_manager.remove(packages)


def publish_args(options: PublishOptions) -> list[str]:
    args = list(PUBLISH_BASE_ARGS)
    if options.dry_run:
        args.append("--dry-run")
    if options.allow_slow_types:
        args.append("--allow-slow-types")
    if options.token:
        args.extend(["--token", options.token])
    return args


def publish(cwd: Path, options: PublishOptions) -> None:
    info = get_deno_download_url()

    bin_folder = Path(options.bin_folder)
    # One folder per platform so a bin folder shared between operating
    # systems never serves the wrong executable.
    bin_path = bin_folder / info.version / sys.platform / deno_binary_name()
    if options.verbose:
        _eprint(f"deno binary: {bin_path}")

    if not file_exists(bin_path):
        # Drop binaries from older versions before fetching the new one.
        try:
            shutil.rmtree(bin_folder)
        except FileNotFoundError:
            pass
        download_deno(bin_path, info)

    exec_cmd(bin_path, publish_args(options), Path(cwd), verbose=options.verbose)
