from __future__ import annotations

import io
import os
import sys
import zipfile
from pathlib import Path
from urllib.error import HTTPError

import pytest

from jsr_cli import download
from jsr_cli.cli_shared import OpError
from jsr_cli.download import DownloadInfo, deno_binary_name, download_deno, get_deno_download_url


def _set_platform(monkeypatch, plat: str, machine: str) -> None:
    monkeypatch.setattr(download.sys, "platform", plat)
    monkeypatch.setattr(download.platform, "machine", lambda: machine)


@pytest.mark.parametrize(
    "plat,machine,expected",
    [
        ("linux", "x86_64", "deno-x86_64-unknown-linux-gnu"),
        ("linux", "aarch64", "deno-aarch64-unknown-linux-gnu"),
        ("darwin", "arm64", "deno-aarch64-apple-darwin"),
        ("darwin", "x86_64", "deno-x86_64-apple-darwin"),
        ("win32", "AMD64", "deno-x86_64-pc-windows-msvc"),
    ],
)
def test_download_url_per_platform(monkeypatch, plat: str, machine: str, expected: str) -> None:
    _set_platform(monkeypatch, plat, machine)
    seen: list[str] = []

    def _fake_get(*, url: str, timeout_seconds: int = 30):
        del timeout_seconds
        seen.append(url)
        return 200, {}, b"d722de886b85093eeef08d1e9fd6f3193405762d\n"

    monkeypatch.setattr(download, "_http_get", _fake_get)
    info = get_deno_download_url()

    assert seen == ["https://dl.deno.land/canary-latest.txt"]
    assert info.version == "d722de886b85093eeef08d1e9fd6f3193405762d"
    assert info.filename == f"{expected}.zip"
    assert info.url == f"https://dl.deno.land/canary/d722de886b85093eeef08d1e9fd6f3193405762d/{expected}.zip"


def test_download_url_rejects_unsupported_platform(monkeypatch) -> None:
    _set_platform(monkeypatch, "freebsd13", "x86_64")
    monkeypatch.setattr(download, "_http_get", lambda **kwargs: pytest.fail("no request expected"))

    with pytest.raises(OpError, match="Unsupported platform: freebsd13 x64"):
        get_deno_download_url()


def test_download_url_reports_http_failure(monkeypatch) -> None:
    _set_platform(monkeypatch, "linux", "x86_64")
    monkeypatch.setattr(download, "_http_get", lambda **kwargs: (503, {}, b"unavailable"))

    with pytest.raises(OpError, match="503: Unable to retrieve canary version information"):
        get_deno_download_url()


def test_binary_name_by_platform(monkeypatch) -> None:
    monkeypatch.setattr(download.sys, "platform", "win32")
    assert deno_binary_name() == "deno.exe"
    monkeypatch.setattr(download.sys, "platform", "linux")
    assert deno_binary_name() == "deno"


class _FakeResponse:
    def __init__(self, body: bytes) -> None:
        self._buf = io.BytesIO(body)
        self.headers = {"content-length": str(len(body))}

    def read(self, n: int = -1) -> bytes:
        return self._buf.read(n)

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None


def _zip_with(name: str, payload: bytes) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(name, payload)
    return buf.getvalue()


INFO = DownloadInfo(url="https://dl.deno.land/canary/abc/deno.zip", filename="deno-test.zip", version="abc")


def test_download_deno_extracts_binary(tmp_path: Path, monkeypatch) -> None:
    bin_path = tmp_path / "bin" / "abc" / sys.platform / deno_binary_name()
    body = _zip_with(deno_binary_name(), b"#!/bin/sh\necho deno\n")
    requested: list[str] = []

    def _fake_urlopen(req, timeout=None):
        del timeout
        requested.append(req.full_url)
        return _FakeResponse(body)

    monkeypatch.setattr(download, "urlopen", _fake_urlopen)
    download_deno(bin_path, INFO)

    assert requested == [INFO.url]
    assert bin_path.read_bytes() == b"#!/bin/sh\necho deno\n"
    assert not (bin_path.parent / "deno-test.zip").exists()
    assert not (bin_path.parent / "deno-test.zip.part").exists()
    if sys.platform != "win32":
        assert os.stat(bin_path).st_mode & 0o777 == 0o755


def test_download_deno_fails_when_archive_lacks_binary(tmp_path: Path, monkeypatch) -> None:
    bin_path = tmp_path / "bin" / deno_binary_name()
    body = _zip_with("README.md", b"nothing here")
    monkeypatch.setattr(download, "urlopen", lambda req, timeout=None: _FakeResponse(body))

    with pytest.raises(OpError, match="did not contain"):
        download_deno(bin_path, INFO)


def test_download_deno_rejects_corrupt_archive(tmp_path: Path, monkeypatch) -> None:
    bin_path = tmp_path / "bin" / deno_binary_name()
    monkeypatch.setattr(download, "urlopen", lambda req, timeout=None: _FakeResponse(b"not a zip"))

    with pytest.raises(OpError, match="not a valid zip"):
        download_deno(bin_path, INFO)
    assert not (bin_path.parent / "deno-test.zip").exists()


def test_download_deno_reports_http_error(tmp_path: Path, monkeypatch) -> None:
    def _fake_urlopen(req, timeout=None):
        raise HTTPError(req.full_url, 404, "Not Found", {}, io.BytesIO(b""))

    monkeypatch.setattr(download, "urlopen", _fake_urlopen)

    with pytest.raises(OpError, match="404: Unable to download deno"):
        download_deno(tmp_path / "bin" / "deno", INFO)
