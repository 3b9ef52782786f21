"""
运行配置模型

定义下载、自检和目录相关的配置项。
"""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from binfetch.exceptions import ConfigValidationError


DEFAULT_BIN_DIR = os.path.join("~", ".local", "bin")


@dataclass
class DownloadConfig:
    """下载配置"""

    max_attempts: int = 3
    retry_delay: float = 1.0
    timeout: float = 60.0
    github_token: Optional[str] = None
    mirror_dir: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DownloadConfig":
        return cls(
            max_attempts=int(data.get("max_attempts", 3)),
            retry_delay=float(data.get("retry_delay", 1.0)),
            timeout=float(data.get("timeout", 60.0)),
            github_token=data.get("github_token"),
            mirror_dir=data.get("mirror_dir"),
        )


@dataclass
class SelfCheckConfig:
    """安装后自检配置"""

    enabled: bool = True
    timeout: float = 30.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SelfCheckConfig":
        return cls(
            enabled=bool(data.get("enabled", True)),
            timeout=float(data.get("timeout", 30.0)),
        )


@dataclass
class BinFetchConfig:
    """BinFetch 主配置"""

    bin_dir: str = DEFAULT_BIN_DIR
    formula_dir: str = "Formula"
    staging_root: Optional[str] = None
    download: DownloadConfig = field(default_factory=DownloadConfig)
    self_check: SelfCheckConfig = field(default_factory=SelfCheckConfig)

    def __post_init__(self):
        self.validate()

    def validate(self):
        """校验配置值"""
        if self.download.max_attempts < 1:
            raise ConfigValidationError(
                "download.max_attempts 必须大于等于 1",
                context={"max_attempts": self.download.max_attempts},
            )
        if self.download.retry_delay < 0:
            raise ConfigValidationError(
                "download.retry_delay 不能为负数",
                context={"retry_delay": self.download.retry_delay},
            )
        if self.download.timeout <= 0:
            raise ConfigValidationError(
                "download.timeout 必须大于 0",
                context={"timeout": self.download.timeout},
            )
        if self.self_check.timeout <= 0:
            raise ConfigValidationError(
                "self_check.timeout 必须大于 0",
                context={"timeout": self.self_check.timeout},
            )

    @property
    def target_bin_dir(self) -> str:
        """展开后的安装目录"""
        return os.path.abspath(os.path.expanduser(self.bin_dir))

    @property
    def staging_dir(self) -> str:
        """临时解压目录的父目录"""
        return self.staging_root or tempfile.gettempdir()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "BinFetchConfig":
        """
        从字典构建配置

        环境变量 BINFETCH_BIN_DIR 覆盖 bin_dir。
        """
        data = data or {}
        bin_dir = os.environ.get("BINFETCH_BIN_DIR") or data.get(
            "bin_dir", DEFAULT_BIN_DIR
        )
        try:
            return cls(
                bin_dir=bin_dir,
                formula_dir=data.get("formula_dir", "Formula"),
                staging_root=data.get("staging_root"),
                download=DownloadConfig.from_dict(data.get("download", {})),
                self_check=SelfCheckConfig.from_dict(data.get("self_check", {})),
            )
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(f"配置值类型错误: {e}")
