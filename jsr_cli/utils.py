from __future__ import annotations

import json
import re
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Sequence

from .cli_shared import ExecError, JsrPackageNameError, _eprint

_PACKAGE_RE = re.compile(r"^@([a-z][a-z0-9-]+)/([a-z0-9-]+)(@(.+))?$")

# Checked in this order inside each directory while walking up.
LOCKFILES: tuple[tuple[str, str], ...] = (
    ("package-lock.json", "npm"),
    ("yarn.lock", "yarn"),
    ("pnpm-lock.yaml", "pnpm"),
    ("bun.lockb", "bun"),
    ("bun.lock", "bun"),
)


class InstallMode(str, Enum):
    DEV = "dev"
    PROD = "prod"
    OPTIONAL = "optional"


@dataclass(frozen=True)
class JsrPackage:
    scope: str
    name: str
    version: str | None = None

    @classmethod
    def from_str(cls, raw: str) -> "JsrPackage":
        m = _PACKAGE_RE.match(raw)
        if m is None:
            raise JsrPackageNameError(
                "Invalid jsr package name: A jsr package name must have the format "
                f'@<scope>/<name>, but got "{raw}"'
            )
        return cls(scope=m.group(1), name=m.group(2), version=m.group(4))

    def _version_suffix(self) -> str:
        return f"@{self.version}" if self.version is not None else ""

    def to_npm_package(self) -> str:
        return f"@jsr/{self.scope}__{self.name}{self._version_suffix()}"

    def to_mapped_arg(self) -> str:
        """Alias form understood by npm-compatible managers: `@scope/name@npm:@jsr/...`."""
        return f"@{self.scope}/{self.name}@npm:{self.to_npm_package()}"

    def __str__(self) -> str:
        return f"@{self.scope}/{self.name}{self._version_suffix()}"


@dataclass(frozen=True)
class ProjectInfo:
    project_dir: Path
    pkg_manager_name: str | None
    package_manager_field: str | None = None


def file_exists(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False


def _read_package_manager_field(package_json: Path) -> str | None:
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    raw = str(data.get("packageManager") or "").strip()
    return raw or None


def find_project_dir(cwd: Path) -> ProjectInfo:
    """Walk up from `cwd` looking for a lockfile.

    The directory with the lockfile wins. Without one, the nearest directory
    holding a package.json is the project dir, falling back to `cwd`.
    """
    cwd = Path(cwd)
    project_dir: Path | None = None
    package_manager_field: str | None = None
    for d in (cwd, *cwd.parents):
        pkg_json = d / "package.json"
        if project_dir is None and file_exists(pkg_json):
            project_dir = d
            package_manager_field = _read_package_manager_field(pkg_json)
        for lockfile, name in LOCKFILES:
            if file_exists(d / lockfile):
                return ProjectInfo(
                    project_dir=d,
                    pkg_manager_name=name,
                    package_manager_field=package_manager_field,
                )
    return ProjectInfo(
        project_dir=project_dir or cwd,
        pkg_manager_name=None,
        package_manager_field=package_manager_field,
    )


def exec_cmd(
    cmd: str | Path,
    args: Sequence[str],
    cwd: Path,
    *,
    verbose: bool = False,
) -> None:
    argv = [str(cmd), *args]
    if verbose:
        _eprint(f"exec: {argv} (cwd={cwd})")
    proc = subprocess.run(
        argv,
        cwd=str(cwd),
        shell=sys.platform == "win32",
        check=False,
    )
    if proc.returncode != 0:
        raise ExecError(proc.returncode)
