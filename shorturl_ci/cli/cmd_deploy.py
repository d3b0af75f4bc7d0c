"""部署与校验命令

凭据参数接受引用而非明文:
  env:NAME   从环境变量读取
  file:PATH  从文件读取
"""

from __future__ import annotations

import click

from shorturl_ci.cli.common import (
    CliState,
    artifact_option,
    pass_state,
    run_stage,
    secret_callback,
    source_argument,
)
from shorturl_ci.core.models import BuildArtifact, Secret


def register(main: click.Group) -> None:
    main.add_command(deploy)
    main.add_command(deploy_cluster)
    main.add_command(validate)


def _kubeconfig_option():
    return click.option(
        "--kubeconfig", required=True, callback=secret_callback,
        help="kubeconfig 引用（env:NAME 或 file:PATH）",
    )


@click.command()
@source_argument()
@artifact_option()
@click.option("--aws-access-key-id", required=True, callback=secret_callback,
              help="AWS access key 引用（env:NAME 或 file:PATH）")
@click.option("--aws-secret-access-key", required=True, callback=secret_callback,
              help="AWS secret key 引用（env:NAME 或 file:PATH）")
@click.option("--aws-region", default=None, help="AWS 区域（默认 us-east-1）")
@click.option("--environment", default=None, help="环境名称（默认 dev）")
@pass_state
def deploy(
    state: CliState, source: str, artifact: BuildArtifact | None,
    aws_access_key_id: Secret, aws_secret_access_key: Secret,
    aws_region: str | None, environment: str | None,
) -> None:
    """init → plan → apply → output，部署基础设施"""
    pipeline = state.container.pipeline
    report = run_stage(state, lambda cancel: pipeline.deploy(
        source, access_key_id=aws_access_key_id,
        secret_access_key=aws_secret_access_key, artifact=artifact,
        region=aws_region, environment=environment, cancel=cancel,
    ))
    click.echo(report, nl=False)


@click.command(name="deploy-cluster")
@source_argument()
@_kubeconfig_option()
@click.option("--helm-repository", default=None, help="Helm chart 仓库（默认 oci://ttl.sh）")
@click.option("--release-name", default=None, help="Release 名称（默认 shorturl）")
@click.option("--namespace", default=None, help="Kubernetes 命名空间（默认 shorturl）")
@click.option("--release-candidate", is_flag=True, help="候选版本（版本号追加 -rc）")
@pass_state
def deploy_cluster(
    state: CliState, source: str, kubeconfig: Secret, helm_repository: str | None,
    release_name: str | None, namespace: str | None, release_candidate: bool,
) -> None:
    """通过 Helm 部署到 Kubernetes（占位实现）"""
    pipeline = state.container.pipeline
    output = run_stage(state, lambda cancel: pipeline.deploy_cluster(
        source, kubeconfig=kubeconfig, helm_repository=helm_repository,
        release_name=release_name, namespace=namespace,
        release_candidate=release_candidate, cancel=cancel,
    ))
    click.echo(output, nl=False)


@click.command()
@source_argument()
@_kubeconfig_option()
@click.option("--release-name", default=None, help="Release 名称（默认 shorturl）")
@click.option("--namespace", default=None, help="Kubernetes 命名空间（默认 shorturl）")
@click.option("--expected-version", default=None, help="期望版本（默认读取 VERSION 文件）")
@click.option("--release-candidate", is_flag=True, help="候选版本（版本号追加 -rc）")
@pass_state
def validate(
    state: CliState, source: str, kubeconfig: Secret, release_name: str | None,
    namespace: str | None, expected_version: str | None, release_candidate: bool,
) -> None:
    """校验部署是否健康（占位实现）"""
    pipeline = state.container.pipeline
    output = run_stage(state, lambda cancel: pipeline.validate(
        source, kubeconfig=kubeconfig, release_name=release_name,
        namespace=namespace, expected_version=expected_version,
        release_candidate=release_candidate, cancel=cancel,
    ))
    click.echo(output, nl=False)
