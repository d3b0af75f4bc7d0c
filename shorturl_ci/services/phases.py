"""阶段执行器 + IaC 阶段定义

阶段严格顺序执行，每个阶段基于上一阶段返回的环境；
任何阶段失败立即停止，不重试也不回滚已完成的阶段。

IaC 四阶段：
1. initialize      - init
2. plan            - plan -out=<plan_file>，产出计划文件
3. apply           - 由 plan 的结果构造，只能执行同一次调用中刚算出的计划
4. collect-outputs - output -json
"""

from __future__ import annotations

import logging
import shlex
import time
from typing import TYPE_CHECKING

from shorturl_ci.core.exceptions import ExecutionError, PhaseError
from shorturl_ci.core.models import ExecutionEnvironment, Phase, PhaseResult

if TYPE_CHECKING:
    from shorturl_ci.core.cancel import CancelToken
    from shorturl_ci.runtime.base import ContainerRuntime

logger = logging.getLogger(__name__)

INITIALIZE = "initialize"
PLAN = "plan"
APPLY = "apply"
COLLECT_OUTPUTS = "collect-outputs"


class PhaseRunner:
    """阶段执行器"""

    def __init__(self, runtime: ContainerRuntime) -> None:
        self.runtime = runtime

    def run(
        self, env: ExecutionEnvironment, phase: Phase,
        cancel: CancelToken | None = None,
    ) -> tuple[ExecutionEnvironment, PhaseResult]:
        """执行单个阶段，返回后继环境与捕获输出"""
        if cancel is not None:
            cancel.raise_if_cancelled(phase.label)
        if phase.requires and not self.runtime.exists(env, phase.requires):
            raise PhaseError(phase.label, f"缺少前置文件: {phase.requires}")

        args = list(phase.args)
        logger.info("$ %s", shlex.join(args), extra={"phase": phase.label})
        start = time.monotonic()
        try:
            env, r = self.runtime.exec(env, args, label=phase.label, cancel=cancel)
        except (ExecutionError, OSError) as e:
            raise PhaseError(phase.label, f"命令无法启动: {e}") from e
        duration = time.monotonic() - start

        result = PhaseResult(
            label=phase.label, args=args, returncode=r.returncode,
            stdout=r.stdout, stderr=r.stderr, duration=duration,
        )
        if not r.success:
            # 取消优先于非零退出码
            if cancel is not None:
                cancel.raise_if_cancelled(phase.label)
            logger.error(
                "失败 (rc=%d, %.1fs)", r.returncode, duration,
                extra={"phase": phase.label},
            )
            raise PhaseError(
                phase.label, f"命令返回非零 (rc={r.returncode})",
                output=result.output, returncode=r.returncode,
            )
        if phase.produces:
            if not self.runtime.exists(env, phase.produces):
                raise PhaseError(
                    phase.label, f"未产出预期文件: {phase.produces}",
                    output=result.output, returncode=r.returncode,
                )
            result.artifact = phase.produces
        logger.info("完成 (%.1fs)", duration, extra={"phase": phase.label})
        return env, result

    def run_all(
        self, env: ExecutionEnvironment, phases: list[Phase],
        cancel: CancelToken | None = None,
    ) -> tuple[ExecutionEnvironment, list[PhaseResult]]:
        """顺序执行一组互不依赖输出的阶段，首个失败即停止"""
        results: list[PhaseResult] = []
        for phase in phases:
            env, result = self.run(env, phase, cancel)
            results.append(result)
        return env, results


class IacPhases:
    """IaC 引擎四阶段命令工厂"""

    def __init__(self, binary: str = "tofu", plan_file: str = "tfplan") -> None:
        self.binary = binary
        self.plan_file = plan_file

    def initialize(self) -> Phase:
        return Phase(INITIALIZE, (self.binary, "init"))

    def plan(self) -> Phase:
        return Phase(
            PLAN,
            (self.binary, "plan", f"-out={self.plan_file}"),
            produces=self.plan_file,
        )

    def apply(self, plan: PhaseResult) -> Phase:
        """只接受 plan 阶段的结果，计划文件名取自该结果"""
        if plan.label != PLAN or not plan.artifact:
            raise PhaseError(APPLY, f"apply 需要 plan 阶段产出的计划文件，收到: {plan.label}")
        return Phase(
            APPLY,
            (self.binary, "apply", "-auto-approve", plan.artifact),
            requires=plan.artifact,
        )

    def collect_outputs(self) -> Phase:
        return Phase(COLLECT_OUTPUTS, (self.binary, "output", "-json"))
