"""构建产物暂存器

有产物时：拷入工作目录 → 解压到固定子目录 → 删除暂存压缩包。
任何一步失败都抛 StagingError，不重试，后续阶段不会运行。
"""

from __future__ import annotations

import logging
import shlex
from typing import TYPE_CHECKING

from shorturl_ci.core.exceptions import (
    ExecutionError,
    PipelineCancelled,
    StagingError,
)
from shorturl_ci.core.models import Artifact, ExecutionEnvironment, NoArtifact, StagingInput

if TYPE_CHECKING:
    from shorturl_ci.core.cancel import CancelToken
    from shorturl_ci.runtime.base import ContainerRuntime

logger = logging.getLogger(__name__)

STAGING_NAME = "lambda-deployment.tar.gz"
TARGET_DIR = "lambda"
STAGE_LABEL = "stage-artifact"


class ArtifactStager:
    """构建产物暂存器"""

    def __init__(
        self, runtime: ContainerRuntime, *,
        staging_name: str = STAGING_NAME, target_dir: str = TARGET_DIR,
    ) -> None:
        self.runtime = runtime
        self.staging_name = staging_name
        self.target_dir = target_dir

    def extract_command(self) -> list[str]:
        """相对工作目录执行：压缩包内顶层即 target_dir"""
        archive = shlex.quote(self.staging_name)
        target = shlex.quote(self.target_dir)
        return [
            "sh", "-c",
            f"mkdir -p {target} && tar -xzf {archive} -C . && rm {archive}",
        ]

    def stage(
        self, env: ExecutionEnvironment, source: StagingInput,
        cancel: CancelToken | None = None,
    ) -> ExecutionEnvironment:
        if isinstance(source, NoArtifact):
            logger.info("未提供构建产物，跳过暂存")
            return env
        if not isinstance(source, Artifact):
            raise StagingError(f"未知的暂存输入: {source!r}")

        artifact = source.artifact
        logger.info(
            "暂存构建产物: %s (sha256=%s) -> %s/%s",
            artifact.name, artifact.digest[:12], env.workdir, self.target_dir,
        )
        try:
            env = self.runtime.copy_in(env, artifact.path, self.staging_name)
            env, result = self.runtime.exec(
                env, self.extract_command(), label=STAGE_LABEL, cancel=cancel,
            )
        except PipelineCancelled:
            raise
        except (OSError, ExecutionError) as e:
            raise StagingError(f"构建产物暂存失败: {e}") from e

        if not result.success:
            output = (result.stdout + result.stderr).strip()
            raise StagingError(
                f"构建产物解压失败 (rc={result.returncode})", output=output,
            )
        if self.runtime.exists(env, self.staging_name):
            raise StagingError(f"暂存压缩包未被清理: {self.staging_name}")
        logger.info("构建产物已解压到 %s/%s", env.workdir, self.target_dir)
        return env
