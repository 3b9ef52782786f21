"""
BinFetch 下载层

包含下载策略、重试获取、git 克隆和 SHA-256 校验。
"""

from binfetch.download.fetcher import FetchStats, ReleaseFetcher
from binfetch.download.git import GitCloner
from binfetch.download.strategies import (
    DownloadStrategy,
    PublicHttpStrategy,
    GitHubPrivateReleaseStrategy,
    LocalMirrorStrategy,
    build_strategy,
    strategy_name_for,
)
from binfetch.download.verifier import ChecksumVerifier

__all__ = [
    "FetchStats",
    "ReleaseFetcher",
    "GitCloner",
    "DownloadStrategy",
    "PublicHttpStrategy",
    "GitHubPrivateReleaseStrategy",
    "LocalMirrorStrategy",
    "build_strategy",
    "strategy_name_for",
    "ChecksumVerifier",
]
