"""统一异常体系

所有流水线异常继承 PipelineError，CLI 层据此输出失败阶段和诊断输出。
编排器是端到端 fail-fast 的：异常原样向调用方传播，不做本地恢复或重试。
"""

from __future__ import annotations


class PipelineError(Exception):
    """流水线基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(PipelineError):
    """配置文件缺失、内容无效或参数组合非法"""

    code = "CONFIG_ERROR"


class ExecutionError(PipelineError):
    """子进程无法启动或执行失败"""

    code = "EXECUTION_ERROR"


class StagingError(PipelineError):
    """构建产物暂存/解压失败，部署在任何阶段运行前中止"""

    code = "STAGING_ERROR"

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class PhaseError(PipelineError):
    """单个阶段的外部命令返回非零或无法启动"""

    code = "PHASE_ERROR"

    def __init__(
        self, label: str, message: str, *,
        output: str = "", returncode: int | None = None,
    ) -> None:
        super().__init__(f"[{label}] {message}")
        self.label = label
        self.output = output
        self.returncode = returncode


class PipelineCancelled(PipelineError):
    """调用方取消或整体截止时间已过"""

    code = "CANCELLED"

    def __init__(self, label: str, reason: str = "cancelled") -> None:
        super().__init__(f"[{label}] 已取消: {reason}")
        self.label = label
        self.reason = reason


class StaleEnvironmentError(PipelineError):
    """使用了早于工作空间当前状态的执行环境"""

    code = "STALE_ENVIRONMENT"


class TransitionError(PipelineError):
    """部署状态机出现非法迁移"""

    code = "INVALID_TRANSITION"
