"""部署编排器 - 驱动 IaC 四阶段流水线

职责：
- 解析部署配置（只在构建环境前做一次默认值回填）
- 构建执行环境、按需暂存构建产物
- 顺序执行 initialize → plan → apply → collect-outputs，首个失败即停止
- 组装 apply 输出与 outputs 报告
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shorturl_ci.core.config import Config
from shorturl_ci.core.exceptions import PipelineError
from shorturl_ci.core.models import (
    Artifact,
    DeploymentConfig,
    ExecutionEnvironment,
    Phase,
    PhaseResult,
    staging_input,
)
from shorturl_ci.services.environment import EnvironmentBuilder
from shorturl_ci.services.orchestrator.models import DeployRequest, DeployRun, DeployState
from shorturl_ci.services.phases import IacPhases, PhaseRunner
from shorturl_ci.services.report import compose_report
from shorturl_ci.services.staging import ArtifactStager

if TYPE_CHECKING:
    from shorturl_ci.core.cancel import CancelToken
    from shorturl_ci.runtime.base import ContainerRuntime

logger = logging.getLogger(__name__)


class DeployOrchestrator:
    """IaC 部署编排器（fail-fast，无重试、无回滚）

    运行时客户端在构造时注入；每次调用都从零构建自己的执行环境和工作空间，
    并发调用之间不共享可变状态。
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        config: Config | None = None,
        *,
        builder: EnvironmentBuilder | None = None,
        stager: ArtifactStager | None = None,
        runner: PhaseRunner | None = None,
    ) -> None:
        self.runtime = runtime
        self.config = config or Config()
        self.builder = builder or EnvironmentBuilder()
        self.stager = stager or ArtifactStager(runtime)
        self.runner = runner or PhaseRunner(runtime)
        self.phases = IacPhases(self.config.iac_binary, self.config.plan_file)

    def execute(
        self, request: DeployRequest, cancel: CancelToken | None = None,
    ) -> DeployRun:
        """执行部署，流水线异常记录在 DeployRun.error 中而不抛出"""
        run = DeployRun()
        try:
            self._run(request, run, cancel)
        except PipelineError as e:
            logger.error("部署失败 (state=%s): %s", run.state.value, e)
            run.fail(e)
        return run

    def deploy(
        self, request: DeployRequest, cancel: CancelToken | None = None,
    ) -> str:
        """执行部署，成功返回组合报告，失败抛出首个错误"""
        run = self.execute(request, cancel)
        if run.error is not None:
            raise run.error
        return run.report

    def _run(
        self, request: DeployRequest, run: DeployRun,
        cancel: CancelToken | None,
    ) -> None:
        config = DeploymentConfig.resolve(
            region=request.region, environment=request.environment,
        )
        run.config = config
        logger.info(
            "=== 部署开始: region=%s environment=%s artifact=%s ===",
            config.region, config.environment,
            request.artifact.name if request.artifact else "-",
        )

        env = self.builder.build_iac(
            self.config.iac_image, request.source, config,
            access_key_id=request.access_key_id,
            secret_access_key=request.secret_access_key,
        )
        run.advance(DeployState.ENVIRONMENT_BUILT)
        logger.debug("执行环境: %s", env.describe())

        if cancel is not None:
            cancel.raise_if_cancelled("environment")
        with self.runtime.open_workspace(env) as env:
            source = staging_input(request.artifact)
            env = self.stager.stage(env, source, cancel)
            run.advance(
                DeployState.ARTIFACT_STAGED if isinstance(source, Artifact)
                else DeployState.ARTIFACT_SKIPPED
            )

            env, _ = self._phase(
                run, env, self.phases.initialize(), DeployState.INITIALIZED, cancel,
            )
            env, plan = self._phase(
                run, env, self.phases.plan(), DeployState.PLANNED, cancel,
            )
            logger.info("输出:\n%s", plan.stdout.rstrip(), extra={"phase": plan.label})
            env, apply = self._phase(
                run, env, self.phases.apply(plan), DeployState.APPLIED, cancel,
            )
            env, outputs = self._phase(
                run, env, self.phases.collect_outputs(),
                DeployState.OUTPUTS_COLLECTED, cancel,
            )

        run.report = compose_report(apply.stdout, outputs.stdout)
        run.advance(DeployState.DONE)
        logger.info("=== 部署完成: %s ===", " → ".join(run.phase_labels))

    def _phase(
        self,
        run: DeployRun,
        env: ExecutionEnvironment,
        phase: Phase,
        reached: DeployState,
        cancel: CancelToken | None,
    ) -> tuple[ExecutionEnvironment, PhaseResult]:
        env, result = self.runner.run(env, phase, cancel)
        run.phases.append(result)
        run.advance(reached)
        return env, result
