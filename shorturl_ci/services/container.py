"""服务容器 — 统一依赖注入

同一容器内的服务共享同一个运行时客户端。容器不是进程级单例：
CLI 每次调用构造一个，测试可以注入假运行时。

用法:
    container = ServiceContainer(config=Config.from_file("configs/default.yml"))
    container.pipeline.unit_test("path/to/source")

    # 注入假运行时
    container = ServiceContainer(runtime=FakeRuntime())
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shorturl_ci.core.config import Config

if TYPE_CHECKING:
    from shorturl_ci.runtime.base import ContainerRuntime
    from shorturl_ci.services.orchestrator import DeployOrchestrator
    from shorturl_ci.services.pipeline import Pipeline

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(
        self,
        config: Config | None = None,
        runtime: ContainerRuntime | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        self._config = config or Config()
        if runtime is not None:
            self._instances["runtime"] = runtime

    @property
    def config(self) -> Config:
        return self._config

    @property
    def runtime(self) -> ContainerRuntime:
        if "runtime" not in self._instances:
            from shorturl_ci.runtime import create_runtime
            self._instances["runtime"] = create_runtime(self._config)
            logger.debug("运行时已创建: %s", self._config.runtime)
        return self._instances["runtime"]  # type: ignore[return-value]

    @property
    def pipeline(self) -> Pipeline:
        if "pipeline" not in self._instances:
            from shorturl_ci.services.pipeline import Pipeline
            self._instances["pipeline"] = Pipeline(
                self.runtime, self._config, orchestrator=self.orchestrator,
            )
        return self._instances["pipeline"]  # type: ignore[return-value]

    @property
    def orchestrator(self) -> DeployOrchestrator:
        if "orchestrator" not in self._instances:
            from shorturl_ci.services.orchestrator import DeployOrchestrator
            self._instances["orchestrator"] = DeployOrchestrator(
                self.runtime, self._config,
            )
        return self._instances["orchestrator"]  # type: ignore[return-value]
