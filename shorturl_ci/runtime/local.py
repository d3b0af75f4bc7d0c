"""本地运行时 — 直接在宿主机的私有工作空间内执行命令，忽略镜像

适用于没有 Docker 的开发机，以及需要真实文件系统行为的测试。
"""

from __future__ import annotations

import os
from pathlib import Path

from shorturl_ci.core.models import ExecutionEnvironment
from shorturl_ci.runtime.base import Workspace, WorkspaceRuntime


class LocalRuntime(WorkspaceRuntime):
    """宿主进程运行时"""

    name = "local"

    def _command(
        self, ws: Workspace, env: ExecutionEnvironment, args: list[str],
    ) -> tuple[list[str], Path, dict[str, str]]:
        proc_env = {
            **os.environ,
            **env.env_vars,
            **{name: s.reveal() for name, s in env.secrets.items()},
        }
        return list(args), ws.host_path(env.workdir), proc_env
