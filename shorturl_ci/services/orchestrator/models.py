"""部署编排数据模型

数据类：
- DeployState: 部署状态机状态
- DeployRequest: 调用方输入（可选字段为 None/空串时取默认值）
- DeployRun: 一次部署的状态轨迹、阶段结果与最终报告
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from shorturl_ci.core.exceptions import PipelineError, TransitionError
from shorturl_ci.core.models import BuildArtifact, DeploymentConfig, PhaseResult, Secret


class DeployState(str, Enum):
    START = "start"
    ENVIRONMENT_BUILT = "environment_built"
    ARTIFACT_STAGED = "artifact_staged"
    ARTIFACT_SKIPPED = "artifact_skipped"
    INITIALIZED = "initialized"
    PLANNED = "planned"
    APPLIED = "applied"
    OUTPUTS_COLLECTED = "outputs_collected"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[DeployState, frozenset[DeployState]] = {
    DeployState.START: frozenset({DeployState.ENVIRONMENT_BUILT}),
    DeployState.ENVIRONMENT_BUILT: frozenset({
        DeployState.ARTIFACT_STAGED, DeployState.ARTIFACT_SKIPPED,
    }),
    DeployState.ARTIFACT_STAGED: frozenset({DeployState.INITIALIZED}),
    DeployState.ARTIFACT_SKIPPED: frozenset({DeployState.INITIALIZED}),
    DeployState.INITIALIZED: frozenset({DeployState.PLANNED}),
    DeployState.PLANNED: frozenset({DeployState.APPLIED}),
    DeployState.APPLIED: frozenset({DeployState.OUTPUTS_COLLECTED}),
    DeployState.OUTPUTS_COLLECTED: frozenset({DeployState.DONE}),
    DeployState.DONE: frozenset(),
    DeployState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({DeployState.DONE, DeployState.FAILED})


@dataclass
class DeployRequest:
    """一次部署的调用方输入"""

    source: Path
    access_key_id: Secret
    secret_access_key: Secret
    artifact: BuildArtifact | None = None
    region: str | None = None
    environment: str | None = None


@dataclass
class DeployRun:
    """一次部署的执行记录"""

    state: DeployState = DeployState.START
    trace: list[DeployState] = field(default_factory=lambda: [DeployState.START])
    config: DeploymentConfig | None = None
    phases: list[PhaseResult] = field(default_factory=list)
    report: str = ""
    error: PipelineError | None = None

    def advance(self, state: DeployState) -> None:
        """按状态机迁移；FAILED 可从任意非终止状态进入"""
        if state == DeployState.FAILED:
            allowed = self.state not in TERMINAL_STATES
        else:
            allowed = state in _TRANSITIONS[self.state]
        if not allowed:
            raise TransitionError(f"非法状态迁移: {self.state.value} -> {state.value}")
        self.state = state
        self.trace.append(state)

    def fail(self, error: PipelineError) -> None:
        self.error = error
        self.advance(DeployState.FAILED)

    @property
    def success(self) -> bool:
        return self.state == DeployState.DONE

    @property
    def phase_labels(self) -> list[str]:
        return [p.label for p in self.phases]
