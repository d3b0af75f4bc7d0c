"""EnvironmentBuilder / compose_report 单元测试"""

from __future__ import annotations

from pathlib import Path

from shorturl_ci.core.models import DeploymentConfig, Secret
from shorturl_ci.services.environment import IAC_WORKDIR, WORKSPACE_PATH, EnvironmentBuilder
from shorturl_ci.services.report import compose_report


class TestEnvironmentBuilder:
    def test_build_base(self, tmp_path: Path) -> None:
        env = EnvironmentBuilder().build_base("node:18-slim", tmp_path)
        assert env.image == "node:18-slim"
        assert env.workdir == WORKSPACE_PATH
        assert [(m.target, m.source) for m in env.mounts] == [("/workspace", tmp_path)]
        assert env.workspace is None

    def test_build_iac(self, tmp_path: Path, aws_secrets) -> None:
        key_id, secret_key = aws_secrets
        cfg = DeploymentConfig.resolve(region="eu-central-1", environment="prod")
        env = EnvironmentBuilder().build_iac(
            "tofu:latest", tmp_path, cfg,
            access_key_id=key_id, secret_access_key=secret_key,
        )
        assert env.workdir == IAC_WORKDIR == "/workspace/terraform"
        assert env.env_vars == {
            "AWS_REGION": "eu-central-1",
            "TF_VAR_aws_region": "eu-central-1",
            "TF_VAR_environment": "prod",
        }
        assert env.secrets["AWS_ACCESS_KEY_ID"] is key_id
        assert env.secrets["AWS_SECRET_ACCESS_KEY"] is secret_key
        # 凭据不以普通变量出现
        assert "AKIATESTKEY" not in env.env_vars.values()

    def test_build_cluster(self, tmp_path: Path) -> None:
        cfg = DeploymentConfig.resolve()
        kube = Secret("kubeconfig", "apiVersion: v1")
        env = EnvironmentBuilder().build_cluster("alpine", tmp_path, cfg, kubeconfig=kube)
        assert env.secrets == {"KUBECONFIG_DATA": kube}
        assert env.env_vars == {"HELM_RELEASE": "shorturl", "HELM_NAMESPACE": "shorturl"}


class TestComposeReport:
    def test_verbatim_concatenation(self) -> None:
        report = compose_report("Apply complete!\n", '{"url": {"value": "x"}}\n')
        assert report == 'Apply complete!\n\n\nOutputs:\n{"url": {"value": "x"}}\n'

    def test_empty_outputs(self) -> None:
        assert compose_report("", "") == "\n\nOutputs:\n"
