"""流水线各阶段入口

每个阶段都是同一套粘合逻辑：构建执行环境 → 打开独占工作空间 →
（按需暂存产物）→ 顺序执行一两个阶段命令 → 返回捕获输出。
deploy 委托给 DeployOrchestrator；deliver / deploy-cluster / validate 目前是占位实现。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from shorturl_ci.core.config import Config
from shorturl_ci.core.exceptions import ConfigError
from shorturl_ci.core.models import (
    BuildArtifact,
    DeploymentConfig,
    ExecutionEnvironment,
    Phase,
    PhaseResult,
    Secret,
    staging_input,
)
from shorturl_ci.services.environment import EnvironmentBuilder
from shorturl_ci.services.orchestrator import DeployOrchestrator, DeployRequest
from shorturl_ci.services.phases import PhaseRunner
from shorturl_ci.services.staging import STAGING_NAME, ArtifactStager

if TYPE_CHECKING:
    from shorturl_ci.core.cancel import CancelToken
    from shorturl_ci.runtime.base import ContainerRuntime

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "0.0.0"
DEFAULT_CONTAINER_REPOSITORY = "ttl.sh"
DEFAULT_HELM_REPOSITORY = "oci://ttl.sh"
DEFAULT_TARGET_HOST = "localhost"
DEFAULT_TARGET_PORT = "8080"


def read_version(source: str | Path, release_candidate: bool = False) -> str:
    """读取源码根目录 VERSION 文件，候选版本追加 -rc"""
    p = Path(source) / "VERSION"
    version = p.read_text(encoding="utf-8").strip() if p.is_file() else ""
    version = version or DEFAULT_VERSION
    if release_candidate and not version.endswith("-rc"):
        version = f"{version}-rc"
    return version


def parse_port(value: str | None) -> str:
    port = value or DEFAULT_TARGET_PORT
    if not (port.isascii() and port.isdigit()) or not 0 < int(port) < 65536:
        raise ConfigError(f"端口无效: {port!r}")
    return port


class Pipeline:
    """短链接服务流水线"""

    def __init__(
        self,
        runtime: ContainerRuntime,
        config: Config | None = None,
        *,
        builder: EnvironmentBuilder | None = None,
        orchestrator: DeployOrchestrator | None = None,
    ) -> None:
        self.runtime = runtime
        self.config = config or Config()
        self.builder = builder or EnvironmentBuilder()
        self.runner = PhaseRunner(runtime)
        self.stager = ArtifactStager(runtime)
        self.orchestrator = orchestrator or DeployOrchestrator(
            runtime, self.config, builder=self.builder,
        )

    def _run(
        self,
        env: ExecutionEnvironment,
        phases: list[Phase],
        *,
        artifact: BuildArtifact | None = None,
        cancel: CancelToken | None = None,
    ) -> list[PhaseResult]:
        with self.runtime.open_workspace(env) as env:
            env = self.stager.stage(env, staging_input(artifact), cancel)
            _, results = self.runner.run_all(env, phases, cancel)
        return results

    def _echo(
        self, source: str | Path, label: str, message: str,
        cancel: CancelToken | None = None,
    ) -> str:
        env = self.builder.build_base(self.config.base_image, source)
        results = self._run(env, [Phase(label, ("echo", message))], cancel=cancel)
        return results[-1].stdout

    # ---- 构建 ----

    def build(
        self,
        source: str | Path,
        *,
        release_candidate: bool = False,
        output_dir: str | Path | None = None,
        cancel: CancelToken | None = None,
    ) -> BuildArtifact:
        """安装依赖 → 语法检查 → 打包 lambda/，导出压缩包"""
        version = read_version(source, release_candidate)
        out = Path(output_dir or self.config.artifact_dir)
        env = self.builder.build_base(self.config.node_image, source)
        phases = [
            Phase("install-deps", (
                "sh", "-c",
                "cd lambda && if [ -f package.json ]; then npm install --omit=dev; fi",
            )),
            Phase("syntax-check", (
                "sh", "-c",
                "find lambda -name '*.js' -not -path '*/node_modules/*' "
                "-exec sh -c 'for f; do node --check \"$f\" || exit 1; done' sh {} +",
            )),
            Phase("package", ("tar", "-czf", STAGING_NAME, "lambda"), produces=STAGING_NAME),
        ]
        logger.info("构建 lambda 产物: version=%s", version)
        with self.runtime.open_workspace(env) as env:
            env, _ = self.runner.run_all(env, phases, cancel)
            path = self.runtime.export(env, STAGING_NAME, out / STAGING_NAME)
        artifact = BuildArtifact.from_path(path, version=version)
        logger.info("构建产物: %s (sha256=%s)", artifact.path, artifact.digest[:12])
        return artifact

    # ---- 测试 ----

    def unit_test(
        self,
        source: str | Path,
        *,
        artifact: BuildArtifact | None = None,
        cancel: CancelToken | None = None,
    ) -> str:
        """运行 tests/run-unit-tests.sh；给定产物时先解压覆盖 lambda/"""
        env = self.builder.build_base(self.config.node_image, source)
        results = self._run(
            env, [Phase("unit-tests", ("bash", "tests/run-unit-tests.sh"))],
            artifact=artifact, cancel=cancel,
        )
        return results[-1].stdout

    def integration_test(
        self,
        source: str | Path,
        *,
        target_host: str | None = None,
        target_port: str | None = None,
        cancel: CancelToken | None = None,
    ) -> str:
        """对已部署实例运行 tests/run-integration-tests.sh"""
        host = target_host or DEFAULT_TARGET_HOST
        port = parse_port(target_port)
        api_url = f"http://{host}:{port}"
        env = self.builder.build_base(self.config.curl_image, source)
        logger.info("集成测试目标: %s", api_url)
        results = self._run(env, [
            Phase("install-bash", ("sh", "-c", "apk add --no-cache bash")),
            Phase("integration-tests", ("bash", "tests/run-integration-tests.sh", api_url)),
        ], cancel=cancel)
        return results[-1].stdout

    # ---- 部署 ----

    def deploy(
        self,
        source: str | Path,
        *,
        access_key_id: Secret,
        secret_access_key: Secret,
        artifact: BuildArtifact | None = None,
        region: str | None = None,
        environment: str | None = None,
        cancel: CancelToken | None = None,
    ) -> str:
        return self.orchestrator.deploy(DeployRequest(
            source=Path(source), access_key_id=access_key_id,
            secret_access_key=secret_access_key, artifact=artifact,
            region=region, environment=environment,
        ), cancel)

    # ---- 占位阶段 ----

    def deliver(
        self,
        source: str | Path,
        *,
        container_repository: str | None = None,
        helm_repository: str | None = None,
        artifact: BuildArtifact | None = None,
        release_candidate: bool = False,
        cancel: CancelToken | None = None,
    ) -> str:
        container_repo = container_repository or DEFAULT_CONTAINER_REPOSITORY
        helm_repo = helm_repository or DEFAULT_HELM_REPOSITORY
        logger.info(
            "发布目标: container=%s helm=%s version=%s artifact=%s",
            container_repo, helm_repo, read_version(source, release_candidate),
            artifact.name if artifact else "-",
        )
        return self._echo(
            source, "deliver", "There are no packages to be delivered.", cancel,
        )

    def deploy_cluster(
        self,
        source: str | Path,
        *,
        kubeconfig: Secret,
        helm_repository: str | None = None,
        release_name: str | None = None,
        namespace: str | None = None,
        release_candidate: bool = False,
        cancel: CancelToken | None = None,
    ) -> str:
        config = DeploymentConfig.resolve(release_name=release_name, namespace=namespace)
        helm_repo = helm_repository or DEFAULT_HELM_REPOSITORY
        version = read_version(source, release_candidate)
        env = self.builder.build_cluster(
            self.config.base_image, source, config, kubeconfig=kubeconfig,
        )
        message = (
            f"Helm deployment of {config.release_name} {version} from {helm_repo} "
            f"into namespace {config.namespace} is not implemented yet."
        )
        results = self._run(env, [Phase("deploy-cluster", ("echo", message))], cancel=cancel)
        return results[-1].stdout

    def validate(
        self,
        source: str | Path,
        *,
        kubeconfig: Secret,
        release_name: str | None = None,
        namespace: str | None = None,
        expected_version: str | None = None,
        release_candidate: bool = False,
        cancel: CancelToken | None = None,
    ) -> str:
        config = DeploymentConfig.resolve(release_name=release_name, namespace=namespace)
        version = expected_version or read_version(source, release_candidate)
        env = self.builder.build_cluster(
            self.config.base_image, source, config, kubeconfig=kubeconfig,
        )
        message = (
            f"Validation of {config.release_name} {version} "
            f"in namespace {config.namespace} is not implemented yet."
        )
        results = self._run(env, [Phase("validate", ("echo", message))], cancel=cancel)
        return results[-1].stdout
