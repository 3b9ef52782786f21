"""
日志模块

使用 loguru 输出流水线日志。日志写到 stderr，标准输出只留给命令结果，
便于脚本捕获安装路径。
"""

import os
import sys
from typing import Optional

from loguru import logger


LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
DEBUG_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"


def setup_logger(
    level: Optional[str] = None,
    sink=None,
    colorize: Optional[bool] = None,
) -> None:
    """
    设置日志记录器

    Args:
        level: 日志级别；为空时由 BINFETCH_DEBUG 决定 DEBUG 或 INFO
        sink: 输出目标，默认调用时的 sys.stderr
        colorize: 是否着色；为空时仅在终端上着色
    """
    if level is None:
        level = "DEBUG" if os.environ.get("BINFETCH_DEBUG", "0") == "1" else "INFO"
    debug = level == "DEBUG"

    if sink is None:
        sink = sys.stderr
    if colorize is None:
        isatty = getattr(sink, "isatty", None)
        colorize = bool(isatty and isatty())

    logger.remove()
    logger.add(
        sink=sink,
        format=DEBUG_LOG_FORMAT if debug else LOG_FORMAT,
        level=level,
        colorize=colorize,
        backtrace=debug,
        diagnose=debug,
    )

    if debug:
        logger.debug("DEBUG 模式已启用")


__all__ = ["logger", "setup_logger"]
