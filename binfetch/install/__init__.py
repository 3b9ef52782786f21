"""
BinFetch 安装层

包含暂存解压、可执行文件安装和安装后自检。
"""

from binfetch.install.stager import ArchiveStager, StagingArea, detect_format
from binfetch.install.installer import find_binary, install, self_check

__all__ = [
    "ArchiveStager",
    "StagingArea",
    "detect_format",
    "find_binary",
    "install",
    "self_check",
]
