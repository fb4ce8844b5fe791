from __future__ import annotations

import os
import platform
import sys
import zipfile
from dataclasses import dataclass
from pathlib import Path
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from rich.progress import BarColumn, DownloadColumn, Progress, TextColumn, TransferSpeedColumn

from .cli_shared import OpError, _console, _http_get

DENO_CANARY_INFO_URL = "https://dl.deno.land/canary-latest.txt"
DENO_CANARY_BASE_URL = "https://dl.deno.land/canary"

# Keyed by "<sys.platform> <arch>".
FILENAMES: dict[str, str] = {
    "darwin arm64": "deno-aarch64-apple-darwin",
    "darwin x64": "deno-x86_64-apple-darwin",
    "linux arm64": "deno-aarch64-unknown-linux-gnu",
    "linux x64": "deno-x86_64-unknown-linux-gnu",
    "win32 x64": "deno-x86_64-pc-windows-msvc",
}

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "arm64": "arm64",
    "aarch64": "arm64",
}

_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class DownloadInfo:
    url: str
    filename: str
    version: str


def _platform_key() -> str:
    machine = platform.machine().strip().lower()
    return f"{sys.platform} {_ARCH_ALIASES.get(machine, machine)}"


def deno_binary_name() -> str:
    return "deno.exe" if sys.platform == "win32" else "deno"


def get_deno_download_url() -> DownloadInfo:
    key = _platform_key()
    name = FILENAMES.get(key)
    if name is None:
        raise OpError(f"Unsupported platform: {key}")

    status, _hdrs, raw = _http_get(url=DENO_CANARY_INFO_URL)
    if status < 200 or status >= 300:
        raise OpError(
            f"{status}: Unable to retrieve canary version information from {DENO_CANARY_INFO_URL}."
        )
    sha = raw.decode("utf-8", errors="replace").strip()
    if not sha:
        raise OpError(f"empty canary version information from {DENO_CANARY_INFO_URL}")
    filename = f"{name}.zip"
    return DownloadInfo(
        url=f"{DENO_CANARY_BASE_URL}/{quote(sha)}/{filename}",
        filename=filename,
        version=sha,
    )


def _progress() -> Progress:
    return Progress(
        TextColumn("[bold]deno[/bold]"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=_console(),
        transient=True,
    )


def _stream_to_file(url: str, dest: Path) -> None:
    req = Request(url, method="GET")
    try:
        with urlopen(req, timeout=30) as resp:
            length = resp.headers.get("content-length")
            total = int(length) if length and length.isdigit() else None
            with _progress() as progress, dest.open("wb") as out:
                task = progress.add_task("download", total=total)
                while True:
                    chunk = resp.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    out.write(chunk)
                    progress.advance(task, len(chunk))
    except HTTPError as e:
        raise OpError(f"{e.code}: Unable to download deno from {url}.") from e
    except URLError as e:
        raise OpError(f"http request failed: {e}") from e


def download_deno(bin_path: Path, info: DownloadInfo) -> None:
    """Fetch the deno archive for `info` and unpack it next to `bin_path`."""
    bin_path = Path(bin_path)
    bin_folder = bin_path.parent
    bin_folder.mkdir(parents=True, exist_ok=True)

    _console().print("Downloading JSR binary...")
    tmp_file = bin_folder / f"{info.filename}.part"
    _stream_to_file(info.url, tmp_file)

    archive = bin_folder / info.filename
    os.replace(tmp_file, archive)
    try:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(bin_folder)
    except zipfile.BadZipFile as e:
        raise OpError(f"downloaded archive is not a valid zip: {archive}") from e
    finally:
        archive.unlink(missing_ok=True)

    if not bin_path.is_file():
        raise OpError(f"archive {info.filename} did not contain {bin_path.name}")
    if sys.platform != "win32":
        os.chmod(bin_path, 0o755)
