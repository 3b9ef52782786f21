"""
CLI 模块

命令行接口实现。
"""

import asyncio
import os
from typing import Optional

import click
from loguru import logger

from binfetch import __version__
from binfetch.models import BinFetchConfig, InstallMode
from binfetch.services import FormulaCatalog
from binfetch.orchestrator import InstallOrchestrator
from binfetch.exceptions import BinFetchError, FormulaConflictError
from binfetch.logger import setup_logger
from binfetch.utils import load_document


DEFAULT_CONFIG_FILE = "binfetch.toml"


class StageFailure(click.ClickException):
    """流水线失败，退出码与异常类别一一对应"""

    def __init__(self, error: BinFetchError):
        formula = error.context.get("formula", "?")
        super().__init__(f"{error.stage} 阶段失败 [{formula}]: {error}")
        self.exit_code = error.exit_code
        self.error = error


def load_config(config_path: Optional[str]) -> BinFetchConfig:
    """加载配置文件；未指定时尝试当前目录下的 binfetch.toml"""
    if config_path is None:
        if not os.path.exists(DEFAULT_CONFIG_FILE):
            return BinFetchConfig.from_dict({})
        config_path = DEFAULT_CONFIG_FILE

    document = load_document(config_path)
    return BinFetchConfig.from_dict(document or {})


def _run(coro):
    """运行协程，并将 BinFetchError 转换为对应退出码"""
    try:
        return asyncio.run(coro)
    except FormulaConflictError as e:
        for definition in e.definitions:
            click.echo(
                f"  {definition['name']} {definition['version']}: "
                f"{definition['url'] or definition['head']} (sha256 {definition['sha256']})",
                err=True,
            )
        raise StageFailure(e)
    except BinFetchError as e:
        raise StageFailure(e)


def _load(ctx: click.Context, formula_dir: Optional[str]):
    try:
        config: BinFetchConfig = ctx.obj["config_loader"]()
        catalog = FormulaCatalog.from_directory(formula_dir or config.formula_dir)
    except BinFetchError as e:
        raise StageFailure(e)
    return config, catalog


@click.group()
@click.option(
    "-c", "--config", "config_path", type=click.Path(), help="配置文件路径"
)
@click.option("--debug", is_flag=True, help="启用调试模式")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], debug: bool):
    """BinFetch - 预编译二进制发布包安装工具"""
    setup_logger(level="DEBUG" if debug else None)
    ctx.ensure_object(dict)
    ctx.obj["config_loader"] = lambda: load_config(config_path)


@main.command("install")
@click.argument("name")
@click.option("--head", is_flag=True, help="从 head 仓库安装")
@click.option("--version", "version", help="指定配方版本")
@click.option("--bin-dir", type=click.Path(file_okay=False), help="安装目录")
@click.option("--formula-dir", type=click.Path(), help="配方目录")
@click.option("--no-self-check", is_flag=True, help="跳过安装后自检")
@click.pass_context
def install_command(
    ctx: click.Context,
    name: str,
    head: bool,
    version: Optional[str],
    bin_dir: Optional[str],
    formula_dir: Optional[str],
    no_self_check: bool,
):
    """安装配方 NAME"""
    config, catalog = _load(ctx, formula_dir)
    orchestrator = InstallOrchestrator(config, catalog)
    mode = InstallMode.HEAD if head else InstallMode.STABLE

    result = _run(
        orchestrator.install(
            name,
            mode=mode,
            version=version,
            bin_dir=bin_dir,
            run_self_check=False if no_self_check else None,
        )
    )
    click.echo(str(result.installed_path))


@main.command("test")
@click.argument("name")
@click.option("--version", "version", help="指定配方版本")
@click.option("--bin-dir", type=click.Path(file_okay=False), help="安装目录")
@click.option("--formula-dir", type=click.Path(), help="配方目录")
@click.pass_context
def test_command(
    ctx: click.Context,
    name: str,
    version: Optional[str],
    bin_dir: Optional[str],
    formula_dir: Optional[str],
):
    """对已安装的 NAME 运行自检"""
    config, catalog = _load(ctx, formula_dir)
    orchestrator = InstallOrchestrator(config, catalog)
    path = _run(orchestrator.test(name, version=version, bin_dir=bin_dir))
    click.echo(f"{path}: ok")


@main.command("list")
@click.option("--formula-dir", type=click.Path(), help="配方目录")
@click.pass_context
def list_command(ctx: click.Context, formula_dir: Optional[str]):
    """列出配方目录及冲突定义"""
    _, catalog = _load(ctx, formula_dir)

    if not len(catalog):
        click.echo("没有任何配方")
        return

    for formula in catalog:
        modes = []
        if formula.source_url:
            modes.append("stable")
        if formula.head_source_url:
            modes.append("head")
        click.echo(f"{formula.name} {formula.version} [{', '.join(modes)}]")

    conflicts = catalog.conflicts()
    if conflicts:
        click.echo("")
        click.echo("冲突定义:")
        for name, definitions in conflicts.items():
            versions = ", ".join(f.version for f in definitions)
            click.echo(f"  {name}: {versions}")
        logger.warning(f"{len(conflicts)} 个配方存在冲突定义，安装时需用 --version 指定")


if __name__ == "__main__":
    main()
