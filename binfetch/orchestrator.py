"""
主协调器

按顺序执行 解析 -> 获取 -> 校验 -> 暂存 -> 安装 -> 自检。
任一阶段失败都会中止后续阶段，临时目录在错误抛出前清理完毕。
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from binfetch.models import BinFetchConfig, Formula, InstallMode
from binfetch.services import FormulaCatalog, resolve
from binfetch.download import ChecksumVerifier, ReleaseFetcher
from binfetch.install import ArchiveStager, StagingArea, install, self_check
from binfetch.process import run_command
from binfetch.exceptions import BinFetchError, FormatError, VerificationError


@dataclass
class InstallResult:
    """安装结果"""

    formula: Formula
    mode: InstallMode
    installed_path: Path
    attempts: int = 0
    verified: bool = False


class InstallOrchestrator:
    """BinFetch 主协调器"""

    def __init__(
        self,
        config: BinFetchConfig,
        catalog: FormulaCatalog,
        fetcher: Optional[ReleaseFetcher] = None,
        stager: Optional[ArchiveStager] = None,
    ):
        self.config = config
        self.catalog = catalog
        self.fetcher = fetcher or ReleaseFetcher(config.download)
        self.stager = stager or ArchiveStager()

    async def install(
        self,
        name: str,
        mode: Union[InstallMode, str] = InstallMode.STABLE,
        version: Optional[str] = None,
        bin_dir: Optional[str] = None,
        run_self_check: Optional[bool] = None,
    ) -> InstallResult:
        """按名称（及可选版本）从目录中查找配方并安装"""
        formula = self._lookup(name, version)
        return await self.install_formula(formula, mode, bin_dir, run_self_check)

    async def install_formula(
        self,
        formula: Formula,
        mode: Union[InstallMode, str] = InstallMode.STABLE,
        bin_dir: Optional[str] = None,
        run_self_check: Optional[bool] = None,
    ) -> InstallResult:
        """运行完整的安装流水线"""
        target_dir = Path(bin_dir).expanduser() if bin_dir else Path(self.config.target_bin_dir)
        if run_self_check is None:
            run_self_check = self.config.self_check.enabled

        try:
            resolved = resolve(formula, mode)
            logger.info(
                f"开始安装 {formula.name} {formula.version} ({resolved.mode.value})..."
            )

            if resolved.mode == InstallMode.STABLE:
                data = await self.fetcher.fetch(resolved)
                ChecksumVerifier.verify(data, resolved.expected_checksum, formula.name)
                logger.success(f"[校验] {resolved.filename} SHA-256 匹配")

                with StagingArea(formula.name, self.config.staging_root) as area:
                    staged = self.stager.stage(
                        data, resolved.filename, area.path, raw_name=formula.binary_name
                    )
                    installed_path = install(staged, target_dir, formula.binary_name)
            else:
                with StagingArea(formula.name, self.config.staging_root) as area:
                    staged = await self.fetcher.fetch(resolved, destination=area.path / "src")
                    await self._build_head(formula, staged)
                    installed_path = install(staged, target_dir, formula.binary_name)

            result = InstallResult(
                formula=formula,
                mode=resolved.mode,
                installed_path=installed_path,
                attempts=self.fetcher.stats.attempts,
            )

            if run_self_check:
                await self._self_check(formula, installed_path)
                result.verified = True

            logger.success(f"{formula.name} {formula.version} 已安装到 {installed_path}")
            return result

        except BinFetchError as e:
            e.context.setdefault("formula", formula.name)
            logger.debug(f"[失败] {formula.name} 在 {e.stage} 阶段失败: {e}")
            raise
        finally:
            await self.fetcher.close()

    async def test(
        self,
        name: str,
        version: Optional[str] = None,
        bin_dir: Optional[str] = None,
    ) -> Path:
        """对已安装的可执行文件重新运行自检"""
        formula = self._lookup(name, version)
        target_dir = Path(bin_dir).expanduser() if bin_dir else Path(self.config.target_bin_dir)
        installed_path = target_dir / formula.binary_name

        try:
            if not installed_path.is_file():
                raise VerificationError(
                    f"{formula.binary_name} 尚未安装",
                    context={"installed_path": str(installed_path)},
                )
            await self._self_check(formula, installed_path)
        except BinFetchError as e:
            e.context.setdefault("formula", formula.name)
            logger.debug(f"[失败] {formula.name} 在 {e.stage} 阶段失败: {e}")
            raise
        return installed_path

    def _lookup(self, name: str, version: Optional[str]) -> Formula:
        """从目录查找配方；未知或冲突的名称同样带上 formula 上下文"""
        try:
            return self.catalog.get(name, version)
        except BinFetchError as e:
            e.context.setdefault("formula", name)
            logger.debug(f"[失败] {name} 在 {e.stage} 阶段失败: {e}")
            raise

    async def _self_check(self, formula: Formula, installed_path: Path):
        await self_check(
            installed_path,
            formula.test_args,
            timeout=self.config.self_check.timeout,
        )

    async def _build_head(self, formula: Formula, source_dir: Path):
        """在 head 克隆目录中执行构建命令"""
        for command in formula.head_build:
            logger.info(f"[构建] {' '.join(command)}")
            try:
                result = await run_command(
                    command, cwd=source_dir, timeout=self.config.download.timeout * 10
                )
            except (OSError, asyncio.TimeoutError) as e:
                raise FormatError(
                    f"构建命令无法执行: {' '.join(command)}: {e!r}",
                    context={"command": list(command)},
                )
            if not result.ok:
                raise FormatError(
                    f"构建命令失败 (退出码 {result.returncode}): {' '.join(command)}",
                    context={"command": list(command), "output": result.tail()},
                )
