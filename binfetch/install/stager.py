"""
暂存与解压

将已校验的内容解压到独立命名的临时目录；目录在成功或失败后都会被删除。
"""

import gzip
import io
import lzma
import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
import zlib
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from binfetch.exceptions import FormatError, InstallIOError


TAR_SUFFIXES = (".tar.gz", ".tgz", ".tar.bz2", ".tbz2", ".tar.xz", ".txz", ".tar")
ZIP_SUFFIXES = (".zip",)

# 魔数 -> tarfile 打开模式
TAR_MAGIC = (
    (b"\x1f\x8b", "r:gz"),
    (b"BZh", "r:bz2"),
    (b"\xfd7zXZ\x00", "r:xz"),
)
ZIP_MAGIC = (b"PK\x03\x04", b"PK\x05\x06")


class StagingArea:
    """
    一次安装独占的临时目录

    用法::

        with StagingArea("mindarc") as area:
            ...  # area.path
    """

    def __init__(self, name: str, root: Optional[str] = None):
        self.name = name
        self.root = root
        self.path: Optional[Path] = None

    def __enter__(self) -> "StagingArea":
        try:
            if self.root:
                os.makedirs(self.root, exist_ok=True)
            self.path = Path(
                tempfile.mkdtemp(prefix=f"binfetch-{self.name}-", dir=self.root)
            )
        except OSError as e:
            raise InstallIOError(
                f"无法创建暂存目录: {e}", context={"root": self.root}
            )
        logger.debug(f"[暂存] 创建 {self.path}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()

    def cleanup(self):
        """删除暂存目录"""
        if self.path is not None and self.path.exists():
            shutil.rmtree(self.path, ignore_errors=True)
            logger.debug(f"[暂存] 已清理 {self.path}")


def detect_format(data: bytes, filename: str) -> Optional[str]:
    """
    判断内容格式

    Returns:
        tarfile 模式（如 ``r:gz``）、``zip``，或 None 表示不是归档
    """
    for magic, mode in TAR_MAGIC:
        if data.startswith(magic):
            return mode
    if data.startswith(ZIP_MAGIC):
        return "zip"
    if len(data) > 262 and data[257:262] == b"ustar":
        return "r:"

    lowered = filename.lower()
    if lowered.endswith(TAR_SUFFIXES) or lowered.endswith(ZIP_SUFFIXES):
        # 文件名声明是归档但内容无法识别
        raise FormatError(
            f"无法识别的归档内容: {filename}", context={"filename": filename}
        )
    return None


def _ensure_inside(root: Path, member_name: str) -> Path:
    target = (root / member_name).resolve()
    if target != root and root not in target.parents:
        raise FormatError(
            f"归档成员越出暂存目录: {member_name}", context={"member": member_name}
        )
    return target


def _check_tar_members(tar: tarfile.TarFile, root: Path):
    members = []
    for member in tar.getmembers():
        _ensure_inside(root, member.name)
        if member.issym():
            _ensure_inside(root, os.path.join(os.path.dirname(member.name), member.linkname))
        elif member.islnk():
            _ensure_inside(root, member.linkname)
        elif member.isdev():
            logger.debug(f"[解压] 跳过设备文件 {member.name}")
            continue
        members.append(member)
    return members


def _extract_zip(archive: zipfile.ZipFile, root: Path):
    for info in archive.infolist():
        _ensure_inside(root, info.filename)
    for info in archive.infolist():
        extracted = archive.extract(info, root)
        # zipfile 不保留权限位
        mode = (info.external_attr >> 16) & 0o777
        if mode and not info.is_dir():
            os.chmod(extracted, mode)


class ArchiveStager:
    """归档解压器"""

    def stage(
        self,
        data: bytes,
        filename: str,
        destination: Union[str, os.PathLike],
        raw_name: Optional[str] = None,
    ) -> Path:
        """
        解压内容到暂存目录

        Args:
            data: 已校验的内容
            filename: 产物文件名（用于格式判断）
            destination: 暂存目录
            raw_name: 非归档内容写入时使用的文件名，默认 filename

        Returns:
            暂存根目录

        Raises:
            FormatError: 归档损坏、格式不受支持或存在越界成员
            InstallIOError: 写入暂存目录失败
        """
        root = Path(destination).resolve()
        kind = detect_format(data, filename)

        try:
            root.mkdir(parents=True, exist_ok=True)
            if kind is None:
                target = root / (raw_name or filename)
                target.write_bytes(data)
                target.chmod(target.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
                logger.info(f"[解压] {filename} 不是归档，按可执行文件暂存")
                return root

            logger.info(f"[解压] {filename} -> {root}")
            if kind == "zip":
                with zipfile.ZipFile(io.BytesIO(data)) as archive:
                    _extract_zip(archive, root)
            else:
                with tarfile.open(fileobj=io.BytesIO(data), mode=kind) as tar:
                    members = _check_tar_members(tar, root)
                    tar.extractall(path=root, members=members)
        except (
            tarfile.TarError,
            zipfile.BadZipFile,
            EOFError,
            zlib.error,
            lzma.LZMAError,
            gzip.BadGzipFile,
        ) as e:
            raise FormatError(
                f"归档损坏: {filename}: {e}", context={"filename": filename}
            )
        except OSError as e:
            raise InstallIOError(
                f"写入暂存目录失败: {e}", context={"path": str(root)}
            )

        return root
