"""CLI 公共工具：调用上下文、取消信号、错误输出、参数转换"""

from __future__ import annotations

import signal
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

import click

from shorturl_ci.core.cancel import CancelToken
from shorturl_ci.core.exceptions import (
    ConfigError,
    PhaseError,
    PipelineError,
    StagingError,
)
from shorturl_ci.core.models import BuildArtifact, Secret
from shorturl_ci.services.container import ServiceContainer

T = TypeVar("T")


@dataclass
class CliState:
    """一次 CLI 调用的共享状态"""

    container: ServiceContainer
    timeout: float | None = None


pass_state = click.make_pass_decorator(CliState)


@contextmanager
def cancel_scope(timeout: float | None) -> Iterator[CancelToken]:
    """创建取消令牌，SIGINT/SIGTERM 触发取消（仅主线程安装信号处理器）"""
    token = CancelToken(timeout=timeout)
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    def _handler(signum: int, _frame: Any) -> None:
        token.cancel(f"收到信号 {signal.Signals(signum).name}")

    previous = {
        sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def run_stage(state: CliState, fn: Callable[[CancelToken], T]) -> T:
    """执行一个流水线阶段，流水线异常转为非零退出并输出失败阶段的诊断"""
    with cancel_scope(state.timeout) as token:
        try:
            return fn(token)
        except PipelineError as e:
            output = getattr(e, "output", "")
            if isinstance(e, (PhaseError, StagingError)) and output:
                click.echo(output.rstrip(), err=True)
            raise click.ClickException(f"{e.code}: {e}") from e


def secret_callback(ctx: click.Context, param: click.Parameter, value: str | None) -> Secret | None:
    """把 env:NAME / file:PATH 引用转换为 Secret"""
    if value is None:
        return None
    try:
        return Secret.from_ref(param.name or "secret", value)
    except ConfigError as e:
        raise click.BadParameter(str(e)) from e


def artifact_callback(
    ctx: click.Context, param: click.Parameter, value: str | None,
) -> BuildArtifact | None:
    if not value:
        return None
    try:
        return BuildArtifact.from_path(value)
    except ConfigError as e:
        raise click.BadParameter(str(e)) from e


def source_argument() -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    return click.argument(
        "source", type=click.Path(exists=True, file_okay=False, resolve_path=True),
    )


def artifact_option() -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    return click.option(
        "--build-artifact", "artifact", default=None,
        callback=artifact_callback, expose_value=True,
        type=click.Path(dir_okay=False),
        help="build 阶段产出的压缩包路径",
    )
