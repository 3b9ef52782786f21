"""Shared fixtures for binfetch tests."""

import hashlib
import io
import tarfile
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from binfetch.exceptions import NetworkError
from binfetch.models import BinFetchConfig, DownloadConfig, Formula


RELEASE_URL = (
    "https://github.com/mindarc/mindarc-cli/releases/download/"
    "v1.0.1/mindarc-v1.0.1-darwin-arm64.tar.gz"
)
HEAD_URL = "https://github.com/mindarc/mindarc-cli.git"

HELP_SCRIPT = b"#!/bin/sh\necho 'usage: mindarc [--help]'\nexit 0\n"


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def make_tarball(files: Dict[str, bytes], mode: int = 0o755, compression: str = "gz") -> bytes:
    """Build an in-memory tar archive from ``{name: content}``."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode=f"w:{compression}") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = mode
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


def make_zip(files: Dict[str, bytes], mode: int = 0o755) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            info = zipfile.ZipInfo(name)
            info.external_attr = (0o100000 | mode) << 16
            archive.writestr(info, content)
    return buffer.getvalue()


class FakeStrategy:
    """In-memory download strategy that can fail a fixed number of times."""

    def __init__(self, payload: bytes = b"", failures: int = 0):
        self.payload = payload
        self.failures = failures
        self.calls: List[str] = []

    async def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        if len(self.calls) <= self.failures:
            raise NetworkError("connection refused", context={"url": url})
        return self.payload


@pytest.fixture
def release_tarball() -> bytes:
    return make_tarball({"mindarc": HELP_SCRIPT, "README.md": b"mindarc cli\n"})


@pytest.fixture
def make_formula():
    def factory(
        checksum: Optional[str] = None,
        url: Optional[str] = RELEASE_URL,
        head: Optional[str] = HEAD_URL,
        version: str = "1.0.1",
        **kwargs,
    ) -> Formula:
        return Formula(
            name=kwargs.pop("name", "mindarc"),
            version=version,
            homepage_url="https://www.mindarc.com.au",
            source_url=url,
            expected_checksum=checksum,
            head_source_url=head,
            **kwargs,
        )

    return factory


@pytest.fixture
def config(tmp_path: Path) -> BinFetchConfig:
    staging = tmp_path / "staging"
    staging.mkdir()
    return BinFetchConfig(
        bin_dir=str(tmp_path / "bin"),
        staging_root=str(staging),
        download=DownloadConfig(max_attempts=3, retry_delay=0.0, timeout=5.0),
    )
