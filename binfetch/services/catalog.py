"""
配方目录服务

以 (name, version) 为键保存配方；同名多版本时不再以最后定义为准，
而是作为冲突上报给使用者。
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from loguru import logger

from binfetch.models import Formula
from binfetch.exceptions import ConfigError, FormulaConflictError
from binfetch.utils import SUPPORTED_SUFFIXES, load_document


class FormulaCatalog:
    """版本化配方目录"""

    def __init__(self, formulas: Optional[Iterable[Formula]] = None):
        self._entries: Dict[Tuple[str, str], Formula] = {}
        for formula in formulas or []:
            self.add(formula)

    def add(self, formula: Formula) -> None:
        """
        注册配方

        Raises:
            ConfigError: 同一 (name, version) 已被定义
        """
        if formula.key in self._entries:
            existing = self._entries[formula.key]
            raise ConfigError(
                f"配方 '{formula.name}' 版本 {formula.version} 被重复定义",
                context={"definitions": [existing.summary(), formula.summary()]},
            )
        self._entries[formula.key] = formula
        logger.debug(f"[目录] 已注册 {formula.name} {formula.version}")

    def versions(self, name: str) -> List[Formula]:
        """返回某个名称的全部定义，按版本升序"""
        found = [f for (n, _), f in self._entries.items() if n == name]
        return sorted(found, key=lambda f: f.parsed_version)

    def get(self, name: str, version: Optional[str] = None) -> Formula:
        """
        查找配方

        Args:
            name: 工具名称
            version: 指定版本；为空时要求该名称只有一个定义

        Raises:
            ConfigError: 配方不存在
            FormulaConflictError: 未指定版本且存在多个定义
        """
        if version is not None:
            formula = self._entries.get((name, version))
            if formula is None:
                raise ConfigError(
                    f"找不到配方 '{name}' 版本 {version}",
                    context={
                        "formula": name,
                        "available": [f.version for f in self.versions(name)],
                    },
                )
            return formula

        candidates = self.versions(name)
        if not candidates:
            raise ConfigError(f"找不到配方 '{name}'", context={"formula": name})
        if len(candidates) > 1:
            raise FormulaConflictError(
                f"配方 '{name}' 存在 {len(candidates)} 个冲突定义，请用 --version 指定",
                definitions=[f.summary() for f in candidates],
            )
        return candidates[0]

    def conflicts(self) -> Dict[str, List[Formula]]:
        """列出所有存在多个定义的名称"""
        result: Dict[str, List[Formula]] = {}
        for name in self.names():
            definitions = self.versions(name)
            if len(definitions) > 1:
                result[name] = definitions
        return result

    def names(self) -> List[str]:
        return sorted({name for name, _ in self._entries})

    def __iter__(self):
        return iter(sorted(self._entries.values(), key=lambda f: f.key))

    def __len__(self) -> int:
        return len(self._entries)

    def load_file(self, path: Union[str, Path]) -> int:
        """
        从单个文件加载配方

        文件内容可以是单个配方映射，也可以是 ``formula`` 列表。

        Returns:
            加载的配方数量
        """
        document = load_document(path)
        if isinstance(document, dict) and "formula" in document:
            entries = document["formula"]
            if isinstance(entries, dict):
                entries = [entries]
        elif isinstance(document, list):
            entries = document
        else:
            entries = [document]

        for entry in entries:
            self.add(Formula.from_dict(entry))
        return len(entries)

    def load_directory(self, directory: Union[str, Path]) -> int:
        """加载目录下所有受支持的配方文件"""
        directory = Path(directory)
        if not directory.is_dir():
            raise ConfigError(
                f"配方目录不存在: {directory}", context={"path": str(directory)}
            )

        count = 0
        for path in sorted(directory.iterdir()):
            if path.suffix.lower() in SUPPORTED_SUFFIXES:
                count += self.load_file(path)

        logger.debug(f"[目录] 从 {directory} 加载了 {count} 个配方")
        for name, definitions in self.conflicts().items():
            logger.warning(
                f"[目录] 配方 '{name}' 有 {len(definitions)} 个定义: "
                + ", ".join(f.version for f in definitions)
            )
        return count

    @classmethod
    def from_directory(cls, directory: Union[str, Path]) -> "FormulaCatalog":
        catalog = cls()
        catalog.load_directory(directory)
        return catalog
