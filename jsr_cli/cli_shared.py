from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from rich.console import Console
from rich.markup import escape

try:
    from dotenv import load_dotenv  # type: ignore
except Exception:  # pragma: no cover - exercised only when deps are missing
    load_dotenv = None


class JsrCliError(Exception):
    pass


class UsageError(JsrCliError):
    pass


class OpError(JsrCliError):
    pass


class JsrPackageNameError(UsageError):
    pass


class ExecError(OpError):
    def __init__(self, code: int) -> None:
        super().__init__(f"Child process exited with: {code}")
        self.code = code


JSR_BIN_FOLDER = "JSR_BIN_FOLDER"
JSR_VERBOSE = "JSR_VERBOSE"
NPM_CONFIG_USER_AGENT = "npm_config_user_agent"

_ERROR_CONSOLE = Console(stderr=True, soft_wrap=True)


@dataclass(frozen=True)
class GlobalOpts:
    verbose: bool
    bin_folder: str


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {escape(msg)}", highlight=False)


def _console() -> Console:
    # Resolved per call so redirected/captured stdout is honoured.
    return Console(file=sys.stdout, soft_wrap=True, highlight=False)


def _env_or_none(*names: str) -> str | None:
    for n in names:
        v = (os.environ.get(n) or "").strip()
        if v:
            return v
    return None


def _truthy(raw: str | None) -> bool:
    return str(raw or "").strip().lower() in {"1", "true", "yes", "on"}


def _default_bin_folder() -> Path:
    return Path(__file__).resolve().parent / ".download"


def _bootstrap_env() -> None:
    if load_dotenv is None:
        raise UsageError("missing dependency: python-dotenv (pip install jsr-cli)")
    # Use python-dotenv package defaults: discover and load .env without
    # overriding already-exported process environment values.
    load_dotenv()


def _apply_global_env(*, verbose: bool, bin_folder: str | None) -> GlobalOpts:
    folder = (bin_folder or "").strip() or _env_or_none(JSR_BIN_FOLDER) or str(_default_bin_folder())
    return GlobalOpts(
        verbose=bool(verbose) or _truthy(os.environ.get(JSR_VERBOSE)),
        bin_folder=folder,
    )


def _http_request(
    *,
    method: str,
    url: str,
    timeout_seconds: int = 30,
) -> tuple[int, dict[str, str], bytes]:
    req = Request(url, method=str(method).upper())
    try:
        with urlopen(req, timeout=timeout_seconds) as resp:
            status = getattr(resp, "status", 200)
            hdrs = {k.lower(): v for k, v in dict(resp.headers).items()}
            data = resp.read()
            return int(status), hdrs, data
    except HTTPError as e:
        hdrs = {k.lower(): v for k, v in dict(e.headers or {}).items()}
        data = e.read() if hasattr(e, "read") else b""
        return int(getattr(e, "code", 0) or 0), hdrs, data
    except URLError as e:
        raise OpError(f"http request failed: {e}") from e


def _http_get(*, url: str, timeout_seconds: int = 30) -> tuple[int, dict[str, str], bytes]:
    return _http_request(method="GET", url=url, timeout_seconds=timeout_seconds)
