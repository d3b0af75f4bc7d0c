"""执行环境构建器

只做内存中的环境装配，不执行任何外部命令，也不会失败；
问题只会在阶段真正执行时暴露。
"""

from __future__ import annotations

from pathlib import Path

from shorturl_ci.core.models import DeploymentConfig, ExecutionEnvironment, Secret

WORKSPACE_PATH = "/workspace"
IAC_WORKDIR = f"{WORKSPACE_PATH}/terraform"


class EnvironmentBuilder:
    """执行环境构建器"""

    def build_base(
        self, image: str, source: str | Path, *, workdir: str = WORKSPACE_PATH,
    ) -> ExecutionEnvironment:
        """基础环境：源码挂载到 /workspace"""
        return (
            ExecutionEnvironment(image=image)
            .with_directory(WORKSPACE_PATH, source)
            .with_workdir(workdir)
        )

    def build_iac(
        self,
        image: str,
        source: str | Path,
        config: DeploymentConfig,
        *,
        access_key_id: Secret,
        secret_access_key: Secret,
    ) -> ExecutionEnvironment:
        """IaC 部署环境

        TF_VAR_* 由 IaC 定义自身读取，AWS_REGION 供 provider 使用。
        """
        return (
            self.build_base(image, source, workdir=IAC_WORKDIR)
            .with_secret_variable("AWS_ACCESS_KEY_ID", access_key_id)
            .with_secret_variable("AWS_SECRET_ACCESS_KEY", secret_access_key)
            .with_env_variable("AWS_REGION", config.region)
            .with_env_variable("TF_VAR_aws_region", config.region)
            .with_env_variable("TF_VAR_environment", config.environment)
        )

    def build_cluster(
        self,
        image: str,
        source: str | Path,
        config: DeploymentConfig,
        *,
        kubeconfig: Secret,
    ) -> ExecutionEnvironment:
        """集群（Helm）环境：kubeconfig 只以凭据变量注入"""
        return (
            self.build_base(image, source)
            .with_secret_variable("KUBECONFIG_DATA", kubeconfig)
            .with_env_variable("HELM_RELEASE", config.release_name)
            .with_env_variable("HELM_NAMESPACE", config.namespace)
        )
