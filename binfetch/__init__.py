"""
BinFetch - 预编译二进制发布包的获取、校验与安装
"""

__version__ = "0.1.0"

from binfetch.models import BinFetchConfig, Formula, InstallMode, ResolvedSource
from binfetch.services import FormulaCatalog, resolve
from binfetch.orchestrator import InstallOrchestrator, InstallResult
from binfetch.exceptions import BinFetchError

__all__ = [
    "__version__",
    "BinFetchConfig",
    "Formula",
    "InstallMode",
    "ResolvedSource",
    "FormulaCatalog",
    "resolve",
    "InstallOrchestrator",
    "InstallResult",
    "BinFetchError",
]
