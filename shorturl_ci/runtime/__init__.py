"""容器运行时模块

- base.py: ContainerRuntime 协议、Workspace、公共实现
- docker.py: 基于 docker CLI 的常驻容器运行时
- local.py: 宿主进程运行时
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shorturl_ci.runtime.base import ContainerRuntime, Workspace, WorkspaceRuntime
from shorturl_ci.runtime.docker import DockerRuntime
from shorturl_ci.runtime.local import LocalRuntime

if TYPE_CHECKING:
    from shorturl_ci.core.config import Config
    from shorturl_ci.utils.shell import CommandExecutor


def create_runtime(
    config: Config, executor: CommandExecutor | None = None,
) -> WorkspaceRuntime:
    """按配置创建运行时实例"""
    if config.runtime == "local":
        return LocalRuntime(
            executor, workspace_root=config.workspace_root,
            phase_timeout=config.phase_timeout,
        )
    return DockerRuntime(
        executor, docker_binary=config.docker_binary,
        workspace_root=config.workspace_root,
        phase_timeout=config.phase_timeout,
    )


__all__ = [
    "ContainerRuntime",
    "Workspace",
    "WorkspaceRuntime",
    "DockerRuntime",
    "LocalRuntime",
    "create_runtime",
]
