"""
BinFetch 服务层

包含配方目录和下载源解析服务。
"""

from binfetch.services.catalog import FormulaCatalog
from binfetch.services.resolver import resolve

__all__ = [
    "FormulaCatalog",
    "resolve",
]
