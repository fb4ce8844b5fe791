"""Package manager variants and detection.

Each supported manager implements the same capability interface so callers
never need to check which concrete manager is active.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from rich.markup import escape

from .cli_shared import NPM_CONFIG_USER_AGENT, UsageError, _console
from .utils import InstallMode, JsrPackage, exec_cmd, find_project_dir

PKG_MANAGER_NAMES = ("npm", "yarn", "pnpm", "bun")


class PackageManager(ABC):
    install_cmd: str = "add"
    dev_flag: str = "--dev"
    optional_flag: str = "--optional"

    def __init__(self, cwd: Path, *, verbose: bool = False) -> None:
        self.cwd = Path(cwd)
        self.verbose = verbose

    @property
    @abstractmethod
    def name(self) -> str:
        """Executable name, also used as the detection key."""

    @property
    def needs_alternate_config(self) -> bool:
        """True when the manager cannot pick up registry settings from .npmrc."""
        return False

    def _mode_flag(self, mode: InstallMode) -> str | None:
        if mode == InstallMode.DEV:
            return self.dev_flag
        if mode == InstallMode.OPTIONAL:
            return self.optional_flag
        return None

    def _exec_with_log(self, args: list[str]) -> None:
        _console().print(f"[dim]$ {escape(self.name)} {escape(' '.join(args))}[/dim]")
        exec_cmd(self.name, args, self.cwd, verbose=self.verbose)

    def install(self, packages: Sequence[JsrPackage], mode: InstallMode) -> None:
        args = [self.install_cmd]
        flag = self._mode_flag(mode)
        if flag:
            args.append(flag)
        args.extend(pkg.to_mapped_arg() for pkg in packages)
        self._exec_with_log(args)

    def remove(self, packages: Sequence[JsrPackage]) -> None:
        self._exec_with_log(["remove", *(f"@{pkg.scope}/{pkg.name}" for pkg in packages)])

    def __repr__(self) -> str:
        return f"{type(self).__name__}(cwd={str(self.cwd)!r})"


class Npm(PackageManager):
    name = "npm"
    install_cmd = "install"
    dev_flag = "--save-dev"
    optional_flag = "--save-optional"


class Yarn(PackageManager):
    name = "yarn"


class Pnpm(PackageManager):
    name = "pnpm"
    dev_flag = "--save-dev"
    optional_flag = "--save-optional"


class Bun(PackageManager):
    name = "bun"

    @property
    def needs_alternate_config(self) -> bool:
        # bun reads scoped registries from bunfig.toml only.
        return True


_VARIANTS: dict[str, type[PackageManager]] = {
    "npm": Npm,
    "yarn": Yarn,
    "pnpm": Pnpm,
    "bun": Bun,
}


def _name_from_user_agent(user_agent: str | None) -> str | None:
    ua = (user_agent or "").strip()
    for name in ("pnpm", "yarn", "bun"):
        if ua.startswith(f"{name}/"):
            return name
    return None


def _name_from_package_manager_field(field: str | None) -> str | None:
    raw = (field or "").strip()
    for name in ("pnpm", "yarn", "bun", "npm"):
        if raw == name or raw.startswith(f"{name}@"):
            return name
    return None


def resolve_pkg_manager_name(cwd: Path, name: str | None = None) -> tuple[str, Path]:
    info = find_project_dir(cwd)
    result = (
        (name or "").strip()
        or _name_from_user_agent(os.environ.get(NPM_CONFIG_USER_AGENT))
        or _name_from_package_manager_field(info.package_manager_field)
        or info.pkg_manager_name
        or "npm"
    )
    if result not in _VARIANTS:
        raise UsageError(
            f"unknown package manager {result!r} (expected one of: {', '.join(PKG_MANAGER_NAMES)})"
        )
    return result, info.project_dir


def get_pkg_manager(cwd: Path, name: str | None = None, *, verbose: bool = False) -> PackageManager:
    resolved, project_dir = resolve_pkg_manager_name(cwd, name)
    return _VARIANTS[resolved](project_dir, verbose=verbose)
