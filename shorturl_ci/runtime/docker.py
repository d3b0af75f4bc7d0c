"""Docker 运行时

每个工作空间对应一个常驻容器：
- 打开工作空间时 `docker run -d` 启动容器，挂载私有副本目录
- 每个阶段通过 `docker exec` 执行，容器文件系统在阶段之间保持
- 关闭工作空间时先在容器内清空挂载目录，再 `docker rm -f` 删除容器并终止仍在运行的进程

凭据只以变量名出现在 docker 命令行上，值经由 docker 客户端进程的环境传递。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from shorturl_ci.core.exceptions import ExecutionError
from shorturl_ci.core.models import ExecutionEnvironment
from shorturl_ci.runtime.base import Workspace, WorkspaceRuntime
from shorturl_ci.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

# 清空每个挂载目录的内容（含隐藏文件），保留目录本身
CLEAN_SCRIPT = 'for d; do rm -rf "$d"/* "$d"/.[!.]* "$d"/..?*; done'


class DockerRuntime(WorkspaceRuntime):
    """基于 docker CLI 的运行时"""

    name = "docker"

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        *,
        docker_binary: str = "docker",
        workspace_root: str = "",
        phase_timeout: float | None = None,
    ) -> None:
        super().__init__(
            executor, workspace_root=workspace_root, phase_timeout=phase_timeout,
        )
        self.docker = docker_binary

    def _start(self, ws: Workspace, env: ExecutionEnvironment) -> None:
        argv = [self.docker, "run", "-d", "--rm", "--entrypoint", "tail"]
        for target, host in ws.mounts.items():
            argv += ["-v", f"{host}:{target}"]
        argv += [env.image, "-f", "/dev/null"]
        r = self.executor.execute(argv, cwd=str(ws.root), label="container-start")
        if not r.success:
            raise ExecutionError(
                f"容器启动失败 (rc={r.returncode}): {r.stderr.strip()[:500]}"
            )
        ws.handle = r.stdout.strip()
        logger.info("容器已启动: %s (%s)", ws.handle[:12], env.image)

    def _stop(self, ws: Workspace) -> None:
        if not ws.handle:
            return
        # 容器内进程以 root 写入挂载目录，宿主非 root 用户删不掉，先在容器内清空
        self._docker(ws, "container-clean", [
            "exec", ws.handle, "sh", "-c", CLEAN_SCRIPT, "sh", *sorted(ws.mounts),
        ])
        self._docker(ws, "container-stop", ["rm", "-f", ws.handle])

    def _docker(self, ws: Workspace, label: str, args: list[str]) -> None:
        """执行收尾用的 docker 命令，失败只告警"""
        try:
            r = self.executor.execute(
                [self.docker, *args], cwd=str(ws.root), label=label,
            )
        except ExecutionError as e:
            logger.warning("%s 失败 %s: %s", label, ws.handle[:12], e)
            return
        if not r.success:
            logger.warning("%s 失败 %s: %s", label, ws.handle[:12], r.stderr.strip())

    def _command(
        self, ws: Workspace, env: ExecutionEnvironment, args: list[str],
    ) -> tuple[list[str], Path, dict[str, str]]:
        argv = [self.docker, "exec", "-w", env.workdir]
        for k, v in env.env_vars.items():
            argv += ["-e", f"{k}={v}"]
        for name in env.secrets:
            argv += ["-e", name]
        argv += [ws.handle, *args]
        proc_env = {
            **os.environ,
            **{name: s.reveal() for name, s in env.secrets.items()},
        }
        return argv, ws.root, proc_env
