"""
发布产物获取器

按解析结果选择下载策略或 git 克隆，对传输失败进行有限次线性退避重试。
"""

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, TypeVar, Union

from loguru import logger

from binfetch.models import DownloadConfig, InstallMode, ResolvedSource
from binfetch.download.git import GitCloner
from binfetch.download.strategies import (
    DownloadStrategy,
    build_strategy,
    strategy_name_for,
)
from binfetch.exceptions import ConfigError, NetworkError


T = TypeVar("T")


@dataclass
class FetchStats:
    """获取统计"""

    attempts: int = 0
    retries: int = 0
    bytes_downloaded: int = 0


class ReleaseFetcher:
    """发布产物获取器"""

    def __init__(
        self,
        config: Optional[DownloadConfig] = None,
        strategies: Optional[Dict[str, DownloadStrategy]] = None,
        cloner: Optional[GitCloner] = None,
    ):
        self.config = config or DownloadConfig()
        self.cloner = cloner or GitCloner()
        self.stats = FetchStats()
        # 预先注入的策略优先于按配置创建的策略
        self._strategies: Dict[str, DownloadStrategy] = dict(strategies or {})
        self._owned: Dict[str, DownloadStrategy] = {}

    def strategy_for(self, resolved: ResolvedSource) -> DownloadStrategy:
        """获取（必要时创建）该下载源对应的策略"""
        name = strategy_name_for(resolved)
        if name in self._strategies:
            return self._strategies[name]
        if name not in self._owned:
            self._owned[name] = build_strategy(name, self.config)
        return self._owned[name]

    async def fetch(
        self,
        resolved: ResolvedSource,
        destination: Optional[Union[str, os.PathLike]] = None,
    ) -> Union[bytes, Path]:
        """
        获取产物

        Args:
            resolved: 解析后的下载源
            destination: head 模式的克隆目录

        Returns:
            stable 模式返回下载内容，head 模式返回克隆目录

        Raises:
            ConfigError: 策略不可用或缺少克隆目录
            NetworkError: 重试耗尽
        """
        self.stats = FetchStats()
        name = resolved.formula.name

        if resolved.mode == InstallMode.HEAD:
            if destination is None:
                raise ConfigError(
                    "head 模式需要克隆目录", context={"formula": name}
                )
            logger.info(f"[克隆] {name}: {resolved.url}")
            return await self._with_retries(
                name, lambda: self.cloner.clone(resolved.url, destination)
            )

        # 在任何网络请求之前确定策略，令牌缺失等配置错误不会被重试
        strategy = self.strategy_for(resolved)
        logger.info(f"[下载] {resolved.filename} ({type(strategy).__name__})")
        data = await self._with_retries(name, lambda: strategy.fetch(resolved.url))
        self.stats.bytes_downloaded = len(data)
        logger.info(f"[信息] 文件大小: {len(data) / (1024 * 1024):.2f} MB")
        return data

    async def _with_retries(
        self, name: str, operation: Callable[[], Awaitable[T]]
    ) -> T:
        """仅对 NetworkError 重试，第 n 次失败后等待 retry_delay * n 秒"""
        max_attempts = self.config.max_attempts
        for attempt in range(1, max_attempts + 1):
            self.stats.attempts = attempt
            try:
                return await operation()
            except NetworkError as e:
                if attempt >= max_attempts:
                    logger.debug(
                        f"[错误] 获取 '{name}' 失败，已尝试 {attempt} 次: {e}"
                    )
                    e.context.setdefault("attempts", attempt)
                    raise
                delay = self.config.retry_delay * attempt
                self.stats.retries += 1
                logger.warning(
                    f"[重试] 获取 '{name}' 失败 (第 {attempt} 次): {e}. "
                    f"{delay:.1f}s 后重试..."
                )
                await asyncio.sleep(delay)

        raise AssertionError("unreachable")

    async def close(self):
        """关闭自行创建的策略"""
        for strategy in self._owned.values():
            close = getattr(strategy, "close", None)
            if close is not None:
                await close()
        self._owned.clear()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
