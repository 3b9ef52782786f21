"""
校验器

实现 SHA-256 计算与精确比对。
"""

import hashlib

from binfetch.exceptions import IntegrityError


class ChecksumVerifier:
    """SHA-256 校验器"""

    @staticmethod
    def calc_sha256(data: bytes) -> str:
        """计算内存数据的 SHA-256"""
        return hashlib.sha256(data).hexdigest()

    @staticmethod
    def matches(data: bytes, expected_sha256: str) -> bool:
        """摘要是否与预期值逐字节相同"""
        return ChecksumVerifier.calc_sha256(data) == expected_sha256

    @staticmethod
    def verify(data: bytes, expected_sha256: str, name: str = "") -> bool:
        """
        校验下载内容

        Returns:
            True（匹配时）

        Raises:
            IntegrityError: 摘要不匹配；不会触发重试
        """
        actual = ChecksumVerifier.calc_sha256(data)
        if actual != expected_sha256:
            raise IntegrityError(
                f"SHA-256 校验失败: {name or '下载内容'}",
                context={
                    "formula": name,
                    "expected": expected_sha256,
                    "actual": actual,
                    "size": len(data),
                },
            )
        return True
