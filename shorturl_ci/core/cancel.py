"""取消信号与整体截止时间

调用方持有 CancelToken 并贯穿传递给每个阶段：
- cancel() 由信号处理器或其他线程调用
- 构造时给定 timeout 则在截止时间后自动视为已取消
"""

from __future__ import annotations

import threading
import time

from shorturl_ci.core.exceptions import PipelineCancelled


class CancelToken:
    """线程安全的取消令牌"""

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._reason = ""
        self._deadline = (
            time.monotonic() + timeout if timeout is not None else None
        )

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel("deadline exceeded")
            return True
        return False

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self, label: str) -> None:
        if self.cancelled:
            raise PipelineCancelled(label, self._reason)
