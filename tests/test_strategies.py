import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from binfetch.download import (
    ReleaseFetcher,
    GitHubPrivateReleaseStrategy,
    LocalMirrorStrategy,
    PublicHttpStrategy,
    build_strategy,
    strategy_name_for,
)
from binfetch.exceptions import ConfigError, NetworkError
from binfetch.models import DownloadConfig
from binfetch.services import resolve

from tests.conftest import RELEASE_URL, sha256


async def start_server(routes) -> TestServer:
    app = web.Application()
    app.router.add_routes(routes)
    server = TestServer(app)
    await server.start_server()
    return server


@pytest.mark.asyncio
async def test_public_fetch():
    async def handler(request):
        return web.Response(body=b"tarball-bytes")

    server = await start_server([web.get("/mindarc.tar.gz", handler)])
    try:
        async with PublicHttpStrategy(timeout=5) as strategy:
            data = await strategy.fetch(str(server.make_url("/mindarc.tar.gz")))
    finally:
        await server.close()

    assert data == b"tarball-bytes"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [403, 404, 500, 503])
async def test_public_fetch_http_error(status):
    async def handler(request):
        return web.Response(status=status)

    server = await start_server([web.get("/x", handler)])
    try:
        async with PublicHttpStrategy(timeout=5) as strategy:
            with pytest.raises(NetworkError) as exc_info:
                await strategy.fetch(str(server.make_url("/x")))
    finally:
        await server.close()

    assert exc_info.value.context["status"] == status


@pytest.mark.asyncio
async def test_public_fetch_timeout():
    async def slow(request):
        await asyncio.sleep(2)
        return web.Response(body=b"too late")

    server = await start_server([web.get("/slow", slow)])
    try:
        async with PublicHttpStrategy(timeout=0.3) as strategy:
            with pytest.raises(NetworkError) as exc_info:
                await strategy.fetch(str(server.make_url("/slow")))
    finally:
        await server.close()

    assert exc_info.value.context["timeout"] == 0.3


@pytest.mark.asyncio
async def test_fetcher_retries_after_timeout(make_formula):
    requests = []

    async def flaky(request):
        requests.append(request.path)
        if len(requests) == 1:
            await asyncio.sleep(2)
        return web.Response(body=b"release")

    server = await start_server([web.get("/mindarc.tar.gz", flaky)])
    try:
        url = str(server.make_url("/mindarc.tar.gz"))
        strategy = PublicHttpStrategy(timeout=0.3)
        fetcher = ReleaseFetcher(
            DownloadConfig(max_attempts=3, retry_delay=0.0),
            strategies={"public": strategy},
        )
        resolved = resolve(make_formula(checksum=sha256(b"release"), url=url), "stable")

        async with strategy:
            data = await fetcher.fetch(resolved)
    finally:
        await server.close()

    assert data == b"release"
    assert fetcher.stats.attempts == 2
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_public_fetch_connection_refused(unused_tcp_port):
    async with PublicHttpStrategy(timeout=5) as strategy:
        with pytest.raises(NetworkError):
            await strategy.fetch(f"http://127.0.0.1:{unused_tcp_port}/x")


@pytest.mark.asyncio
async def test_github_private_release_download():
    seen = {}

    async def release(request):
        seen["release_auth"] = request.headers.get("Authorization")
        return web.json_response(
            {
                "tag_name": "v1.0.1",
                "assets": [
                    {"id": 1, "name": "mindarc-v1.0.1-linux-amd64.tar.gz"},
                    {"id": 7, "name": "mindarc-v1.0.1-darwin-arm64.tar.gz"},
                ],
            }
        )

    async def asset(request):
        seen["asset_auth"] = request.headers.get("Authorization")
        seen["asset_accept"] = request.headers.get("Accept")
        return web.Response(body=b"private-bytes")

    server = await start_server(
        [
            web.get("/repos/mindarc/mindarc-cli/releases/tags/v1.0.1", release),
            web.get("/repos/mindarc/mindarc-cli/releases/assets/7", asset),
        ]
    )
    try:
        strategy = GitHubPrivateReleaseStrategy(
            token="s3cret", api_url=str(server.make_url("/")), timeout=5
        )
        async with strategy:
            data = await strategy.fetch(RELEASE_URL)
    finally:
        await server.close()

    assert data == b"private-bytes"
    assert seen == {
        "release_auth": "token s3cret",
        "asset_auth": "token s3cret",
        "asset_accept": "application/octet-stream",
    }


@pytest.mark.asyncio
async def test_github_private_release_missing_asset():
    async def release(request):
        return web.json_response({"assets": [{"id": 1, "name": "other.tar.gz"}]})

    server = await start_server(
        [web.get("/repos/mindarc/mindarc-cli/releases/tags/v1.0.1", release)]
    )
    try:
        strategy = GitHubPrivateReleaseStrategy(
            token="s3cret", api_url=str(server.make_url("/")), timeout=5
        )
        async with strategy:
            with pytest.raises(NetworkError):
                await strategy.fetch(RELEASE_URL)
    finally:
        await server.close()


def test_github_private_release_requires_token(monkeypatch):
    monkeypatch.delenv("HOMEBREW_GITHUB_API_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    with pytest.raises(ConfigError):
        GitHubPrivateReleaseStrategy()


def test_github_private_release_token_from_env(monkeypatch):
    monkeypatch.delenv("HOMEBREW_GITHUB_API_TOKEN", raising=False)
    monkeypatch.setenv("GITHUB_TOKEN", "from-env")
    assert GitHubPrivateReleaseStrategy().token == "from-env"


def test_github_release_url_parsing():
    parts = GitHubPrivateReleaseStrategy.parse_url(RELEASE_URL)
    assert parts == {
        "owner": "mindarc",
        "repo": "mindarc-cli",
        "tag": "v1.0.1",
        "asset": "mindarc-v1.0.1-darwin-arm64.tar.gz",
    }
    with pytest.raises(ConfigError):
        GitHubPrivateReleaseStrategy.parse_url("https://example.com/mindarc.tar.gz")


@pytest.mark.asyncio
async def test_local_mirror(tmp_path):
    (tmp_path / "mindarc-v1.0.1-darwin-arm64.tar.gz").write_bytes(b"mirrored")
    strategy = LocalMirrorStrategy(mirror_dir=str(tmp_path))

    assert await strategy.fetch(RELEASE_URL) == b"mirrored"
    assert await strategy.fetch(
        (tmp_path / "mindarc-v1.0.1-darwin-arm64.tar.gz").as_uri()
    ) == b"mirrored"

    with pytest.raises(NetworkError):
        await strategy.fetch((tmp_path / "missing.tar.gz").as_uri())


@pytest.mark.asyncio
async def test_local_mirror_without_directory():
    with pytest.raises(ConfigError):
        await LocalMirrorStrategy().fetch(RELEASE_URL)


@pytest.mark.parametrize(
    "url, using, expected",
    [
        (RELEASE_URL, None, "public"),
        ("http://example.com/a.tar.gz", None, "public"),
        ("file:///srv/mirror/a.tar.gz", None, "local_mirror"),
        (RELEASE_URL, "github_private_release", "github_private_release"),
        (RELEASE_URL, "GitHubPrivateRepositoryReleaseDownloadStrategy", "github_private_release"),
        (RELEASE_URL, "mirror", "local_mirror"),
    ],
)
def test_strategy_selection(make_formula, url, using, expected):
    formula = make_formula(checksum=sha256(b"x"), url=url, download_strategy=using)
    assert strategy_name_for(resolve(formula, "stable")) == expected


@pytest.mark.parametrize(
    "url, using",
    [
        (RELEASE_URL, "curl_with_magic"),
        ("ftp://example.com/a.tar.gz", None),
    ],
)
def test_strategy_selection_errors(make_formula, url, using):
    formula = make_formula(checksum=sha256(b"x"), url=url, download_strategy=using)
    with pytest.raises(ConfigError):
        strategy_name_for(resolve(formula, "stable"))


def test_build_strategy_injects_configuration(tmp_path):
    config = DownloadConfig(timeout=12, github_token="t0k", mirror_dir=str(tmp_path))

    public = build_strategy("public", config)
    private = build_strategy("github_private_release", config)
    mirror = build_strategy("local_mirror", config)

    assert public.timeout.total == 12
    assert private.token == "t0k"
    assert mirror.mirror_dir == str(tmp_path)
