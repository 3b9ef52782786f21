"""
BinFetch 统一异常体系

提供分层的异常结构，支持错误代码、流水线阶段、退出码和上下文信息。
每一类失败对应唯一的退出码，便于上层脚本据此决定是否重试。
"""

from typing import Any, Dict, List, Optional


class BinFetchError(Exception):
    """BinFetch 基础异常类"""

    stage: str = "unknown"
    exit_code: int = 1

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self._get_default_code()
        self.context = context or {}

    def _get_default_code(self) -> str:
        """获取默认错误代码"""
        return "E000"

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            "error": True,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(BinFetchError):
    """配方或配置不完整、格式错误（不重试）"""

    stage = "resolve"
    exit_code = 2

    def _get_default_code(self) -> str:
        return "E100"


class ConfigParseError(ConfigError):
    """配置文件解析错误"""

    def _get_default_code(self) -> str:
        return "E101"


class ConfigValidationError(ConfigError):
    """配置值校验错误"""

    def _get_default_code(self) -> str:
        return "E102"


class FormulaConflictError(ConfigError):
    """同名配方存在多个定义，无法确定使用哪一个"""

    def __init__(
        self,
        message: str,
        definitions: List[Dict[str, Any]],
        code: Optional[str] = None,
    ):
        super().__init__(message, code, context={"definitions": definitions})
        self.definitions = definitions

    def _get_default_code(self) -> str:
        return "E103"


class NetworkError(BinFetchError):
    """传输失败：连接被拒、超时、4xx/5xx、克隆失败（有限次重试）"""

    stage = "fetch"
    exit_code = 3

    def _get_default_code(self) -> str:
        return "E300"


class IntegrityError(BinFetchError):
    """SHA-256 校验不匹配（永不自动重试）"""

    stage = "verify"
    exit_code = 4

    def _get_default_code(self) -> str:
        return "E400"


class FormatError(BinFetchError):
    """归档损坏或格式不受支持"""

    stage = "stage"
    exit_code = 5

    def _get_default_code(self) -> str:
        return "E500"


class InstallIOError(BinFetchError):
    """安装时的文件系统错误（权限不足、磁盘已满等）"""

    stage = "install"
    exit_code = 6

    def _get_default_code(self) -> str:
        return "E600"


class VerificationError(BinFetchError):
    """安装后自检失败，已安装的文件保留但被标记"""

    stage = "self-check"
    exit_code = 7

    def _get_default_code(self) -> str:
        return "E700"


__all__ = [
    # 基础异常
    "BinFetchError",
    # 配置异常
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    "FormulaConflictError",
    # 流水线各阶段异常
    "NetworkError",
    "IntegrityError",
    "FormatError",
    "InstallIOError",
    "VerificationError",
]
