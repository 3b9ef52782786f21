"""
子进程工具

供 git 克隆、head 构建和安装后自检共用。
"""

import asyncio
import os
from dataclasses import dataclass
from typing import Optional, Sequence, Union


@dataclass
class CommandResult:
    """子进程执行结果"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, limit: int = 500) -> str:
        """错误输出的末尾部分，用于日志和异常上下文"""
        output = (self.stderr or self.stdout).strip()
        return output[-limit:]


async def run_command(
    argv: Sequence[str],
    cwd: Optional[Union[str, os.PathLike]] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """
    运行子进程并等待结束

    Raises:
        OSError: 无法启动进程（文件不存在、无执行权限、架构不匹配等）
        asyncio.TimeoutError: 超时（进程已被终止）
    """
    proc = await asyncio.create_subprocess_exec(
        *[str(arg) for arg in argv],
        cwd=str(cwd) if cwd is not None else None,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise

    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
