"""
BinFetch 数据模型包

包含配方模型和运行配置模型定义。
"""

from binfetch.models.formula import (
    InstallMode,
    Formula,
    ResolvedSource,
    validate_checksum,
    parse_version,
)
from binfetch.models.config import (
    DownloadConfig,
    SelfCheckConfig,
    BinFetchConfig,
)

__all__ = [
    # 配方模型
    "InstallMode",
    "Formula",
    "ResolvedSource",
    "validate_checksum",
    "parse_version",
    # 配置模型
    "DownloadConfig",
    "SelfCheckConfig",
    "BinFetchConfig",
]
