"""
文件读取工具

按扩展名解析 TOML / JSON / YAML 文档。
"""

import json
from pathlib import Path
from typing import Any, Union

import toml
import yaml

from binfetch.exceptions import ConfigParseError


SUPPORTED_SUFFIXES = (".toml", ".json", ".yaml", ".yml")


def load_document(path: Union[str, Path]) -> Any:
    """
    读取配置或配方文件

    Raises:
        ConfigParseError: 文件不存在、格式不受支持或内容无法解析
    """
    path = Path(path)

    if not path.exists():
        raise ConfigParseError(f"文件不存在: {path}", context={"path": str(path)})

    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
        if suffix == ".toml":
            return toml.loads(text)
        elif suffix == ".json":
            return json.loads(text)
        elif suffix in (".yaml", ".yml"):
            return yaml.safe_load(text)
    except (OSError, toml.TomlDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(
            f"解析文件失败: {path}: {e}", context={"path": str(path)}
        )

    raise ConfigParseError(
        f"不支持的文件格式: {suffix}", context={"path": str(path)}
    )
