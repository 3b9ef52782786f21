"""
下载策略

一个方法的下载接口：``async fetch(url) -> bytes``。
凭据在构造时注入，按配方的 ``using`` 或 URL 协议选择具体实现。
"""

import asyncio
import os
import re
from typing import Dict, Optional, Protocol, runtime_checkable
from urllib.parse import unquote, urlparse

import aiofiles
import aiohttp
from loguru import logger

from binfetch.models import DownloadConfig, ResolvedSource
from binfetch.exceptions import ConfigError, NetworkError


GITHUB_API_URL = "https://api.github.com"
GITHUB_RELEASE_PATTERN = re.compile(
    r"^https?://github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+)"
    r"/releases/download/(?P<tag>[^/]+)/(?P<asset>[^/?#]+)"
)
TOKEN_ENV_VARS = ("HOMEBREW_GITHUB_API_TOKEN", "GITHUB_TOKEN")


@runtime_checkable
class DownloadStrategy(Protocol):
    """下载策略接口"""

    async def fetch(self, url: str) -> bytes: ...


class _HttpSession:
    """共享的 aiohttp session 管理"""

    def __init__(
        self,
        timeout: float = 60.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owned_session = True
        return self._session

    async def _get(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        as_json: bool = False,
    ):
        """GET 请求，非 200 或传输失败统一转换为 NetworkError"""
        try:
            async with self.session.get(
                url, headers=headers, timeout=self.timeout
            ) as response:
                if response.status != 200:
                    raise NetworkError(
                        f"HTTP {response.status}",
                        context={"url": url, "status": response.status},
                    )
                if as_json:
                    return await response.json()
                return await response.read()
        # ServerTimeoutError 同时是 ClientError，超时分支需在前
        except asyncio.TimeoutError:
            raise NetworkError(
                f"请求超时 ({self.timeout.total}s)",
                context={"url": url, "timeout": self.timeout.total},
            )
        except aiohttp.ClientError as e:
            raise NetworkError(
                f"请求失败: {e}", context={"url": url, "error": str(e)}
            )

    async def close(self):
        """关闭 session"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class PublicHttpStrategy(_HttpSession):
    """公开 HTTP(S) 下载"""

    name = "public"

    async def fetch(self, url: str) -> bytes:
        logger.debug(f"[下载] GET {url}")
        return await self._get(url, headers={"Accept": "application/octet-stream"})


class GitHubPrivateReleaseStrategy(_HttpSession):
    """
    GitHub 私有仓库 Release 资源下载

    公开的 releases/download 链接对私有仓库返回 404，
    因此先通过 REST API 按 tag 找到资源 ID，再带令牌下载资源本体。
    """

    name = "github_private_release"

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = GITHUB_API_URL,
        timeout: float = 60.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(timeout=timeout, session=session)
        self.token = token or self._token_from_env()
        if not self.token:
            raise ConfigError(
                "私有仓库下载需要 GitHub 令牌，请设置 "
                + " 或 ".join(TOKEN_ENV_VARS),
                context={"strategy": self.name},
            )
        self.api_url = api_url.rstrip("/")

    @staticmethod
    def _token_from_env() -> Optional[str]:
        for var in TOKEN_ENV_VARS:
            if os.environ.get(var):
                return os.environ[var]
        return None

    def _headers(self, accept: str) -> Dict[str, str]:
        return {
            "Authorization": f"token {self.token}",
            "Accept": accept,
        }

    @staticmethod
    def parse_url(url: str) -> Dict[str, str]:
        """
        解析 Release 下载地址

        Raises:
            ConfigError: 不是 github.com/<owner>/<repo>/releases/download/<tag>/<asset> 格式
        """
        match = GITHUB_RELEASE_PATTERN.match(url)
        if not match:
            raise ConfigError(
                f"不是 GitHub Release 下载地址: {url}", context={"url": url}
            )
        parts = match.groupdict()
        parts["asset"] = unquote(parts["asset"])
        return parts

    async def fetch(self, url: str) -> bytes:
        parts = self.parse_url(url)
        repo_api = f"{self.api_url}/repos/{parts['owner']}/{parts['repo']}"

        logger.debug(f"[下载] 查询 Release {parts['owner']}/{parts['repo']}@{parts['tag']}")
        release = await self._get(
            f"{repo_api}/releases/tags/{parts['tag']}",
            headers=self._headers("application/vnd.github+json"),
            as_json=True,
        )
        if not isinstance(release, dict):
            raise NetworkError("Release 信息格式错误", context={"url": url})

        asset_id = None
        for asset in release.get("assets", []):
            if asset.get("name") == parts["asset"]:
                asset_id = asset.get("id")
                break

        if asset_id is None:
            raise NetworkError(
                f"Release {parts['tag']} 中找不到资源 {parts['asset']}",
                context={"url": url, "status": 404},
            )

        logger.debug(f"[下载] 资源 {parts['asset']} (ID: {asset_id})")
        return await self._get(
            f"{repo_api}/releases/assets/{asset_id}",
            headers=self._headers("application/octet-stream"),
        )


class LocalMirrorStrategy:
    """本地文件或镜像目录"""

    name = "local_mirror"

    def __init__(self, mirror_dir: Optional[str] = None):
        self.mirror_dir = mirror_dir

    def locate(self, url: str) -> str:
        """将 URL 映射为本地路径"""
        parsed = urlparse(url)
        if parsed.scheme == "file":
            return unquote(parsed.path)
        if not self.mirror_dir:
            raise ConfigError(
                f"未配置镜像目录，无法从本地获取 {url}", context={"url": url}
            )
        filename = unquote(parsed.path.rstrip("/").split("/")[-1])
        return os.path.join(os.path.expanduser(self.mirror_dir), filename)

    async def fetch(self, url: str) -> bytes:
        path = self.locate(url)
        logger.debug(f"[下载] 读取本地文件 {path}")
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise NetworkError(
                f"无法读取本地文件: {path}", context={"url": url, "error": str(e)}
            )

    async def close(self):
        pass


STRATEGY_ALIASES = {
    "public": PublicHttpStrategy.name,
    "http": PublicHttpStrategy.name,
    "github_private_release": GitHubPrivateReleaseStrategy.name,
    "GitHubPrivateRepositoryReleaseDownloadStrategy": GitHubPrivateReleaseStrategy.name,
    "local_mirror": LocalMirrorStrategy.name,
    "mirror": LocalMirrorStrategy.name,
}


def strategy_name_for(resolved: ResolvedSource) -> str:
    """
    确定下载策略名称

    配方显式指定的 using 优先，否则按 URL 协议选择。
    """
    if resolved.strategy:
        try:
            return STRATEGY_ALIASES[resolved.strategy]
        except KeyError:
            raise ConfigError(
                f"未知的下载策略: {resolved.strategy}",
                context={"formula": resolved.formula.name},
            )

    scheme = urlparse(resolved.url).scheme
    if scheme == "file":
        return LocalMirrorStrategy.name
    if scheme in ("http", "https"):
        return PublicHttpStrategy.name
    raise ConfigError(
        f"不支持的 URL 协议: {scheme or '(空)'}",
        context={"formula": resolved.formula.name, "url": resolved.url},
    )


def build_strategy(
    name: str,
    config: DownloadConfig,
    session: Optional[aiohttp.ClientSession] = None,
) -> DownloadStrategy:
    """按名称和配置创建下载策略实例"""
    if name == PublicHttpStrategy.name:
        return PublicHttpStrategy(timeout=config.timeout, session=session)
    if name == GitHubPrivateReleaseStrategy.name:
        return GitHubPrivateReleaseStrategy(
            token=config.github_token, timeout=config.timeout, session=session
        )
    if name == LocalMirrorStrategy.name:
        return LocalMirrorStrategy(mirror_dir=config.mirror_dir)
    raise ConfigError(f"未知的下载策略: {name}")
