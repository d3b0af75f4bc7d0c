"""构建与发布命令"""

from __future__ import annotations

import click

from shorturl_ci.cli.common import (
    CliState,
    artifact_option,
    pass_state,
    run_stage,
    source_argument,
)
from shorturl_ci.core.models import BuildArtifact


def register(main: click.Group) -> None:
    main.add_command(build)
    main.add_command(deliver)


@click.command()
@source_argument()
@click.option("--release-candidate", is_flag=True, help="候选版本（版本号追加 -rc）")
@click.option("--output-dir", default=None, help="产物输出目录（默认取配置 artifact_dir）")
@pass_state
def build(state: CliState, source: str, release_candidate: bool, output_dir: str | None) -> None:
    """安装依赖、语法检查并打包 lambda 产物"""
    pipeline = state.container.pipeline
    artifact = run_stage(state, lambda cancel: pipeline.build(
        source, release_candidate=release_candidate,
        output_dir=output_dir, cancel=cancel,
    ))
    click.echo(str(artifact.path))
    click.echo(f"version: {artifact.version}  sha256: {artifact.digest}", err=True)


@click.command()
@source_argument()
@click.option("--container-repository", default=None, help="容器仓库（默认 ttl.sh）")
@click.option("--helm-repository", default=None, help="Helm chart 仓库（默认 oci://ttl.sh）")
@artifact_option()
@click.option("--release-candidate", is_flag=True, help="候选版本（版本号追加 -rc）")
@pass_state
def deliver(
    state: CliState, source: str, container_repository: str | None,
    helm_repository: str | None, artifact: BuildArtifact | None,
    release_candidate: bool,
) -> None:
    """发布容器镜像与 Helm chart（占位实现）"""
    pipeline = state.container.pipeline
    output = run_stage(state, lambda cancel: pipeline.deliver(
        source, container_repository=container_repository,
        helm_repository=helm_repository, artifact=artifact,
        release_candidate=release_candidate, cancel=cancel,
    ))
    click.echo(output, nl=False)
