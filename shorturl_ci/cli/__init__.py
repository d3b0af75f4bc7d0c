"""shorturl-ci 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
调用方（测试或嵌入场景）可通过 obj 传入预先构造的 ServiceContainer。
"""

from __future__ import annotations

import click

from shorturl_ci import __version__
from shorturl_ci.cli.common import CliState
from shorturl_ci.core.config import RUNTIMES, Config
from shorturl_ci.core.exceptions import ConfigError
from shorturl_ci.services.container import ServiceContainer
from shorturl_ci.utils.logger import setup_from_env


@click.group()
@click.version_option(version=__version__)
@click.option("-c", "--config", "config_path", default="configs/default.yml",
              help="配置文件路径（不存在则使用默认配置）")
@click.option("--runtime", type=click.Choice(RUNTIMES), default=None,
              help="覆盖配置中的运行时")
@click.option("--timeout", type=float, default=None,
              help="整体截止时间（秒），超时后取消当前阶段")
@click.pass_context
def main(ctx: click.Context, config_path: str, runtime: str | None, timeout: float | None) -> None:
    """shorturl-ci - 短链接服务 CI/CD 流水线"""
    setup_from_env()
    if isinstance(ctx.obj, ServiceContainer):
        container = ctx.obj
    else:
        try:
            config = Config.from_file(config_path).override(runtime=runtime)
        except ConfigError as e:
            raise click.ClickException(f"{e.code}: {e}") from e
        container = ServiceContainer(config=config)
    ctx.obj = CliState(container=container, timeout=timeout)


# 注册各领域子命令
from shorturl_ci.cli.cmd_build import register as _reg_build  # noqa: E402
from shorturl_ci.cli.cmd_deploy import register as _reg_deploy  # noqa: E402
from shorturl_ci.cli.cmd_test import register as _reg_test  # noqa: E402

_reg_build(main)
_reg_test(main)
_reg_deploy(main)
