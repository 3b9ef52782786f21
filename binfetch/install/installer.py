"""
安装与自检

将暂存目录中的可执行文件复制到目标 bin 目录，并在安装后运行自检。
"""

import asyncio
import os
import shutil
from pathlib import Path
from typing import Optional, Sequence, Union

from loguru import logger

from binfetch.process import run_command
from binfetch.exceptions import FormatError, InstallIOError, VerificationError


def find_binary(staged_path: Union[str, os.PathLike], binary: str) -> Path:
    """
    在暂存目录中查找可执行文件

    优先顶层文件，其次按目录深度由浅到深递归查找。

    Raises:
        FormatError: 产物中不存在该文件
    """
    root = Path(staged_path)
    direct = root / binary
    if direct.is_file():
        return direct

    candidates = [p for p in root.rglob(binary) if p.is_file()]
    if not candidates:
        raise FormatError(
            f"产物中找不到可执行文件 '{binary}'",
            context={"staged_path": str(root), "binary": binary},
        )
    candidates.sort(key=lambda p: (len(p.relative_to(root).parts), str(p)))
    return candidates[0]


def install(
    staged_path: Union[str, os.PathLike],
    target_bin_dir: Union[str, os.PathLike],
    binary: str,
) -> Path:
    """
    安装可执行文件

    先写入同目录下的临时文件再原子替换，避免覆盖正在运行的旧版本时出错。

    Returns:
        安装后的路径

    Raises:
        FormatError: 找不到可执行文件
        InstallIOError: 文件系统错误（权限不足、磁盘已满等）
    """
    source = find_binary(staged_path, binary)
    target_dir = Path(target_bin_dir)
    destination = target_dir / binary
    partial = target_dir / f".{binary}.binfetch-partial"

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, partial)
        partial.chmod(partial.stat().st_mode | 0o755)
        os.replace(partial, destination)
    except OSError as e:
        if partial.exists():
            try:
                partial.unlink()
            except OSError:
                pass
        raise InstallIOError(
            f"安装 '{binary}' 失败: {e}",
            context={"source": str(source), "destination": str(destination)},
        )

    logger.info(f"[安装] {binary} -> {destination}")
    return destination


async def self_check(
    installed_path: Union[str, os.PathLike],
    args: Sequence[str] = ("--help",),
    timeout: Optional[float] = 30.0,
) -> None:
    """
    运行安装后的可执行文件进行自检

    能捕获校验和无法发现的问题，例如 CPU 架构不匹配。

    Raises:
        VerificationError: 无法启动、退出码非零或超时；已安装的文件保留
    """
    path = Path(installed_path)
    context = {"installed_path": str(path), "args": list(args)}
    logger.info(f"[自检] {path.name} {' '.join(args)}")

    try:
        result = await run_command([str(path), *args], timeout=timeout)
    except asyncio.TimeoutError:
        raise VerificationError(f"自检超时 ({timeout}s): {path.name}", context=context)
    except OSError as e:
        raise VerificationError(
            f"无法启动 {path.name}: {e}", context={**context, "error": str(e)}
        )

    if not result.ok:
        raise VerificationError(
            f"自检失败: {path.name} 退出码 {result.returncode}",
            context={**context, "returncode": result.returncode, "output": result.tail()},
        )
    logger.success(f"[自检] {path.name} 通过")
