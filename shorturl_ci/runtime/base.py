"""容器运行时客户端 — 协议与公共工作空间实现

职责:
- 为一次调用创建独占的宿主工作空间（挂载目录的私有副本），调用结束即删除
- 在执行环境中运行命令、拷入/导出文件
- 拒绝过期的执行环境，保证环境按阶段线性传递
"""

from __future__ import annotations

import logging
import posixpath
import shutil
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Protocol

from shorturl_ci.core.exceptions import ConfigError, StaleEnvironmentError
from shorturl_ci.core.models import ExecutionEnvironment, mask_secrets
from shorturl_ci.utils.shell import CommandExecutor, CommandResult, LocalExecutor

if TYPE_CHECKING:
    from shorturl_ci.core.cancel import CancelToken

logger = logging.getLogger(__name__)


# =========================================================================
# 运行时协议
# =========================================================================

class ContainerRuntime(Protocol):
    """容器运行时协议 — 编排器只依赖这组操作，测试可替换为假实现"""

    name: str

    def open_workspace(
        self, env: ExecutionEnvironment,
    ) -> AbstractContextManager[ExecutionEnvironment]:
        """准备独占工作空间，返回绑定后的环境；退出时销毁"""
        ...

    def copy_in(
        self, env: ExecutionEnvironment, source: Path, dest: str,
    ) -> ExecutionEnvironment:
        """把宿主文件拷入环境，返回新环境"""
        ...

    def exists(self, env: ExecutionEnvironment, path: str) -> bool:
        ...

    def export(self, env: ExecutionEnvironment, path: str, dest: Path) -> Path:
        """把环境内文件导出到宿主路径"""
        ...

    def exec(
        self,
        env: ExecutionEnvironment,
        args: list[str],
        *,
        label: str,
        cancel: CancelToken | None = None,
    ) -> tuple[ExecutionEnvironment, CommandResult]:
        """在环境中执行命令，返回后继环境与捕获输出"""
        ...


# =========================================================================
# 工作空间
# =========================================================================

class Workspace:
    """一次调用独占的宿主工作目录

    mounts: 容器路径 → 宿主副本路径
    head:   最近一次变更后的环境层序列，只有持有 head 的环境可以继续使用
    """

    def __init__(self, root: Path, mounts: dict[str, Path]) -> None:
        self.root = root
        self.mounts = mounts
        self.head: tuple[str, ...] = ()
        self.handle = ""

    def _match(self, container_path: str) -> tuple[PurePosixPath, PurePosixPath, Path] | None:
        target = PurePosixPath(posixpath.normpath(container_path))
        best: tuple[PurePosixPath, PurePosixPath, Path] | None = None
        for mount_target, host in self.mounts.items():
            mp = PurePosixPath(mount_target)
            if (target == mp or mp in target.parents) and (
                best is None or len(mp.parts) > len(best[1].parts)
            ):
                best = (target, mp, host)
        return best

    def contains(self, container_path: str) -> bool:
        return self._match(container_path) is not None

    def host_path(self, container_path: str) -> Path:
        """把容器内绝对路径映射到宿主副本路径（最长前缀匹配）"""
        match = self._match(container_path)
        if match is None:
            raise ConfigError(f"路径不在任何挂载目录下: {container_path}")
        target, mount_target, host = match
        return host.joinpath(*target.relative_to(mount_target).parts)

    def check(self, env: ExecutionEnvironment) -> None:
        if env.layers != self.head:
            raise StaleEnvironmentError(
                f"执行环境已过期: 环境层 {list(env.layers)}，"
                f"工作空间当前层 {list(self.head)}"
            )

    def advance(self, env: ExecutionEnvironment, label: str) -> ExecutionEnvironment:
        self.check(env)
        nxt = env.with_layer(label)
        self.head = nxt.layers
        return nxt


def resolve_path(env: ExecutionEnvironment, path: str) -> str:
    """相对路径按工作目录解析"""
    return path if path.startswith("/") else posixpath.join(env.workdir, path)


def _workspace_of(env: ExecutionEnvironment) -> Workspace:
    if env.workspace is None:
        raise ConfigError("执行环境尚未绑定工作空间")
    return env.workspace


# =========================================================================
# 公共实现
# =========================================================================

class WorkspaceRuntime(ABC):
    """基于宿主私有目录的运行时基类

    子类只需实现容器/进程层：_start / _stop / _command。
    """

    name = "base"

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        *,
        workspace_root: str = "",
        phase_timeout: float | None = None,
    ) -> None:
        self.executor = executor or LocalExecutor()
        self.workspace_root = workspace_root
        self.phase_timeout = phase_timeout

    @contextmanager
    def open_workspace(self, env: ExecutionEnvironment) -> Iterator[ExecutionEnvironment]:
        if env.workspace is not None:
            raise ConfigError("执行环境已绑定工作空间，不能重复打开")
        parent = self.workspace_root or None
        if parent:
            Path(parent).mkdir(parents=True, exist_ok=True)
        root = Path(tempfile.mkdtemp(prefix="shorturl-ci-", dir=parent))
        try:
            ws = Workspace(root, self._materialize(env, root))
            bound = env.bound(ws)
            ws.head = bound.layers
            if ws.contains(env.workdir):
                ws.host_path(env.workdir).mkdir(parents=True, exist_ok=True)
            self._start(ws, bound)
            logger.info("工作空间已就绪: %s (runtime=%s, image=%s)", root, self.name, env.image)
            try:
                yield bound
            finally:
                self._stop(ws)
        finally:
            shutil.rmtree(root, ignore_errors=True)
            if root.exists():
                logger.warning("工作空间未能完全清理，需要手动删除: %s", root)
            else:
                logger.debug("工作空间已清理: %s", root)

    @staticmethod
    def _materialize(env: ExecutionEnvironment, root: Path) -> dict[str, Path]:
        mounts: dict[str, Path] = {}
        for i, m in enumerate(env.mounts):
            if not m.source.is_dir():
                raise ConfigError(f"挂载源目录不存在: {m.source}")
            dest = root / f"mount-{i}"
            try:
                shutil.copytree(
                    m.source, dest, symlinks=True,
                    ignore=shutil.ignore_patterns(".git"),
                )
            except OSError as e:
                raise ConfigError(f"挂载源目录复制失败: {m.source} ({e})") from e
            mounts[m.target] = dest
        return mounts

    def copy_in(
        self, env: ExecutionEnvironment, source: Path, dest: str,
    ) -> ExecutionEnvironment:
        ws = _workspace_of(env)
        ws.check(env)
        target = ws.host_path(resolve_path(env, dest))
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        return ws.advance(env, f"copy:{dest}")

    def exists(self, env: ExecutionEnvironment, path: str) -> bool:
        ws = _workspace_of(env)
        return ws.host_path(resolve_path(env, path)).exists()

    def export(self, env: ExecutionEnvironment, path: str, dest: Path) -> Path:
        ws = _workspace_of(env)
        src = ws.host_path(resolve_path(env, path))
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dest)
        return dest

    def exec(
        self,
        env: ExecutionEnvironment,
        args: list[str],
        *,
        label: str,
        cancel: CancelToken | None = None,
    ) -> tuple[ExecutionEnvironment, CommandResult]:
        ws = _workspace_of(env)
        ws.check(env)
        argv, cwd, proc_env = self._command(ws, env, args)
        result = self.executor.execute(
            argv, cwd=str(cwd), env=proc_env,
            timeout=self.phase_timeout, cancel=cancel, label=label,
        )
        secrets = env.secrets.values()
        result.stdout = mask_secrets(result.stdout, secrets)
        result.stderr = mask_secrets(result.stderr, secrets)
        return ws.advance(env, label), result

    def _start(self, ws: Workspace, env: ExecutionEnvironment) -> None:  # noqa: B027
        """工作空间创建后的钩子（例如启动容器）"""

    def _stop(self, ws: Workspace) -> None:  # noqa: B027
        """工作空间销毁前的钩子"""

    @abstractmethod
    def _command(
        self, ws: Workspace, env: ExecutionEnvironment, args: list[str],
    ) -> tuple[list[str], Path, dict[str, str]]:
        """返回 (argv, 宿主 cwd, 子进程环境变量)"""
