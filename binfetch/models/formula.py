"""
配方数据模型

定义发布产物（配方）、安装模式和解析后的下载源。
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from packaging.version import InvalidVersion, Version

from binfetch.exceptions import ConfigError


SHA256_PATTERN = re.compile(r"[0-9a-f]{64}")

DEFAULT_TEST_ARGS: Tuple[str, ...] = ("--help",)


class InstallMode(Enum):
    """安装模式"""

    STABLE = "stable"
    HEAD = "head"


def validate_checksum(checksum: str, name: str = "") -> str:
    """
    校验 SHA-256 摘要格式

    Raises:
        ConfigError: 不是 64 位小写十六进制字符（与 hexdigest 输出一致）
    """
    if not isinstance(checksum, str) or not SHA256_PATTERN.fullmatch(checksum):
        raise ConfigError(
            f"配方 '{name}' 的 sha256 必须是 64 位小写十六进制字符",
            context={"formula": name, "sha256": checksum},
        )
    return checksum


def parse_version(version: str, name: str = "") -> Version:
    """将版本号解析为可比较的 Version 对象"""
    if not version:
        raise ConfigError(f"配方 '{name}' 缺少版本号", context={"formula": name})
    try:
        return Version(version)
    except InvalidVersion:
        raise ConfigError(
            f"配方 '{name}' 的版本号无法比较: {version}",
            context={"formula": name, "version": version},
        )


@dataclass(frozen=True)
class Formula:
    """
    发布产物定义（配方）。

    一经创建即不可变，每次安装请求只读取一次。
    """

    name: str
    version: str
    homepage_url: Optional[str] = None
    source_url: Optional[str] = None
    expected_checksum: Optional[str] = None
    head_source_url: Optional[str] = None
    download_strategy: Optional[str] = None
    binary: Optional[str] = None
    test_args: Tuple[str, ...] = DEFAULT_TEST_ARGS
    head_build: Tuple[Tuple[str, ...], ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.name:
            raise ConfigError("配方缺少 name")
        parse_version(self.version, self.name)

        if self.source_url and not self.expected_checksum:
            raise ConfigError(
                f"配方 '{self.name}' 配置了 url 但缺少 sha256",
                context={"formula": self.name},
            )
        if self.expected_checksum and not self.source_url:
            raise ConfigError(
                f"配方 '{self.name}' 配置了 sha256 但缺少 url",
                context={"formula": self.name},
            )
        if self.expected_checksum is not None:
            validate_checksum(self.expected_checksum, self.name)
        if not self.source_url and not self.head_source_url:
            raise ConfigError(
                f"配方 '{self.name}' 至少需要 url 或 head 之一",
                context={"formula": self.name},
            )

    @property
    def binary_name(self) -> str:
        """安装的可执行文件名"""
        return self.binary or self.name

    @property
    def parsed_version(self) -> Version:
        return parse_version(self.version, self.name)

    @property
    def key(self) -> Tuple[str, str]:
        """目录索引键 (name, version)"""
        return self.name, self.version

    def summary(self) -> Dict[str, Any]:
        """用于冲突报告和列表展示的摘要"""
        return {
            "name": self.name,
            "version": self.version,
            "url": self.source_url,
            "sha256": self.expected_checksum,
            "head": self.head_source_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Formula":
        """
        从字典构建配方

        同时接受简写键（url、sha256、head、homepage、using）和完整键名。
        """
        if not isinstance(data, dict):
            raise ConfigError("配方定义必须是键值映射")

        def pick(*keys: str) -> Any:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        version = pick("version")
        test_args = pick("test_args")
        if test_args is None:
            test_args = DEFAULT_TEST_ARGS
        elif isinstance(test_args, str):
            test_args = (test_args,)

        head_build: List[Tuple[str, ...]] = []
        for command in pick("head_build") or []:
            if isinstance(command, str):
                head_build.append(tuple(command.split()))
            else:
                head_build.append(tuple(str(arg) for arg in command))

        return cls(
            name=str(pick("name") or ""),
            version=str(version) if version is not None else "",
            homepage_url=pick("homepage", "homepage_url"),
            source_url=pick("url", "source_url"),
            expected_checksum=pick("sha256", "expected_checksum"),
            head_source_url=pick("head", "head_source_url"),
            download_strategy=pick("using", "download_strategy"),
            binary=pick("binary"),
            test_args=tuple(str(arg) for arg in test_args),
            head_build=tuple(head_build),
        )


@dataclass(frozen=True)
class ResolvedSource:
    """根据安装模式解析出的下载源"""

    formula: Formula
    mode: InstallMode
    url: str
    expected_checksum: Optional[str] = None
    strategy: Optional[str] = None

    @property
    def filename(self) -> str:
        """URL 最后一段，作为产物文件名"""
        return self.url.rstrip("/").split("/")[-1].split("?")[0]
