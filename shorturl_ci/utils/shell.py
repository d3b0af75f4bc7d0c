"""Shell 命令执行工具 — 统一子进程调用

通过 CommandExecutor 协议抽象子进程执行，方便测试替换。
LocalExecutor 轮询取消令牌，取消时终止子进程并抛出 PipelineCancelled。
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from shorturl_ci.core.exceptions import ExecutionError, PipelineCancelled

if TYPE_CHECKING:
    from shorturl_ci.core.cancel import CancelToken

logger = logging.getLogger(__name__)


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议 — 抽象子进程调用

    测试时可注入 mock 实现，无需 patch subprocess。
    """

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
        label: str = "cmd",
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


# =========================================================================
# 默认实现: 本地子进程执行器
# =========================================================================

class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def __init__(self, poll_interval: float = 0.2, kill_grace: float = 5.0) -> None:
        self.poll_interval = poll_interval
        self.kill_grace = kill_grace

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
        label: str = "cmd",
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
        if cancel is not None:
            cancel.raise_if_cancelled(label)
        try:
            proc = subprocess.Popen(
                args, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                text=True, cwd=cwd, env=env,
            )
        except OSError as e:
            raise ExecutionError(f"{label}无法启动 ({args[0]}): {e}") from e

        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.cancelled:
                    self._terminate(proc)
                    logger.warning("已取消: %s", cancel.reason, extra={"phase": label})
                    raise PipelineCancelled(label, cancel.reason) from None
                if deadline is not None and time.monotonic() >= deadline:
                    stdout, stderr = self._terminate(proc)
                    logger.error("超时 (%ss)", timeout, extra={"phase": label})
                    return CommandResult(
                        returncode=-1, stdout=stdout,
                        stderr=f"{stderr}命令超时 ({timeout}s)", timed_out=True,
                    )

        # 取消后子进程在下一次轮询前退出（Ctrl-C 同时送达子进程组），仍按取消处理
        if cancel is not None and cancel.cancelled:
            logger.warning("已取消: %s", cancel.reason, extra={"phase": label})
            raise PipelineCancelled(label, cancel.reason)

        return CommandResult(
            returncode=proc.returncode, stdout=stdout, stderr=stderr,
        )

    def _terminate(self, proc: subprocess.Popen[str]) -> tuple[str, str]:
        """先 SIGTERM，宽限期后 SIGKILL，返回已产生的输出"""
        proc.terminate()
        try:
            stdout, stderr = proc.communicate(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            proc.kill()
            stdout, stderr = proc.communicate()
        return stdout or "", stderr or ""
