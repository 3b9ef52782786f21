"""
Git 克隆

head 模式下用浅克隆代替普通下载。
"""

import asyncio
import os
import shutil
from pathlib import Path
from typing import Union

from loguru import logger

from binfetch.process import run_command
from binfetch.exceptions import ConfigError, NetworkError


class GitCloner:
    """浅克隆仓库到指定目录"""

    def __init__(self, git: str = "git", timeout: float = 300.0):
        self.git = git
        self.timeout = timeout

    async def clone(self, url: str, destination: Union[str, os.PathLike]) -> Path:
        """
        克隆仓库

        目标目录若已存在会先被清空，保证重试时从干净状态开始。

        Raises:
            ConfigError: 找不到 git
            NetworkError: 克隆失败或超时
        """
        destination = Path(destination)
        if destination.exists():
            shutil.rmtree(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)

        logger.debug(f"[克隆] {url} -> {destination}")
        try:
            result = await run_command(
                [self.git, "clone", "--depth", "1", url, str(destination)],
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise ConfigError(f"找不到 git 可执行文件: {self.git}")
        except asyncio.TimeoutError:
            raise NetworkError(
                f"克隆超时 ({self.timeout}s)", context={"url": url}
            )

        if not result.ok:
            raise NetworkError(
                f"git clone 失败 (退出码 {result.returncode})",
                context={"url": url, "output": result.tail()},
            )
        return destination
