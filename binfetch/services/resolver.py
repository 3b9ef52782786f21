"""
下载源解析服务

根据安装模式从配方中选取下载地址，并在任何网络访问之前完成校验。
"""

from typing import Union

from loguru import logger

from binfetch.models import Formula, InstallMode, ResolvedSource, validate_checksum
from binfetch.exceptions import ConfigError


def resolve(formula: Formula, mode: Union[InstallMode, str]) -> ResolvedSource:
    """
    解析下载源

    Args:
        formula: 配方
        mode: stable 使用 url + sha256，head 使用 head 仓库地址

    Returns:
        ResolvedSource

    Raises:
        ConfigError: 所选模式需要的字段缺失，或摘要格式错误
    """
    try:
        mode = InstallMode(mode)
    except ValueError:
        raise ConfigError(f"未知的安装模式: {mode}", context={"formula": formula.name})

    if mode == InstallMode.HEAD:
        if not formula.head_source_url:
            raise ConfigError(
                f"配方 '{formula.name}' 没有 head 地址，无法以 head 模式安装",
                context={"formula": formula.name, "mode": mode.value},
            )
        logger.debug(f"[解析] {formula.name} (head): {formula.head_source_url}")
        return ResolvedSource(
            formula=formula,
            mode=mode,
            url=formula.head_source_url,
        )

    if not formula.source_url or not formula.expected_checksum:
        raise ConfigError(
            f"配方 '{formula.name}' 缺少 url 或 sha256，无法以 stable 模式安装",
            context={"formula": formula.name, "mode": mode.value},
        )

    checksum = validate_checksum(formula.expected_checksum, formula.name)
    logger.debug(f"[解析] {formula.name} {formula.version}: {formula.source_url}")
    return ResolvedSource(
        formula=formula,
        mode=mode,
        url=formula.source_url,
        expected_checksum=checksum,
        strategy=formula.download_strategy,
    )
