"""ArtifactStager 单元测试

- 假运行时：断言调用顺序与错误映射
- 本地运行时：真实 tar 解压，断言暂存包被清理
"""

from __future__ import annotations

import tarfile
from pathlib import Path

import pytest

from shorturl_ci.core.cancel import CancelToken
from shorturl_ci.core.exceptions import ExecutionError, PipelineCancelled, StagingError
from shorturl_ci.core.models import Artifact, BuildArtifact, NoArtifact
from shorturl_ci.runtime.local import LocalRuntime
from shorturl_ci.services.environment import EnvironmentBuilder
from shorturl_ci.services.staging import STAGE_LABEL, STAGING_NAME, ArtifactStager


def _make_archive(tmp_path: Path, body: str = "exports.handler = 'built';\n") -> BuildArtifact:
    pkg = tmp_path / "pkg" / "lambda"
    pkg.mkdir(parents=True)
    (pkg / "index.js").write_text(body, encoding="utf-8")
    archive = tmp_path / "artifact.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        tar.add(pkg, arcname="lambda")
    return BuildArtifact.from_path(archive)


@pytest.fixture()
def base_env(source_tree: Path):
    return EnvironmentBuilder().build_base("node:18-slim", source_tree)


class TestStagerWithFakeRuntime:
    def test_no_artifact_is_noop(self, fake_runtime, base_env) -> None:
        stager = ArtifactStager(fake_runtime)
        with fake_runtime.open_workspace(base_env) as env:
            assert stager.stage(env, NoArtifact()) is env
        assert fake_runtime.calls == []

    def test_copy_then_extract(self, fake_runtime, base_env, tmp_path) -> None:
        artifact = _make_archive(tmp_path)
        with fake_runtime.open_workspace(base_env) as env:
            env = ArtifactStager(fake_runtime).stage(env, Artifact(artifact))
        assert [label for label, _ in fake_runtime.calls] == ["copy", STAGE_LABEL]
        assert fake_runtime.calls[0][1] == [str(artifact.path), STAGING_NAME]
        assert env.layers == (f"copy:{STAGING_NAME}", STAGE_LABEL)

    def test_extract_command(self, fake_runtime) -> None:
        assert ArtifactStager(fake_runtime).extract_command() == [
            "sh", "-c",
            "mkdir -p lambda && tar -xzf lambda-deployment.tar.gz -C . "
            "&& rm lambda-deployment.tar.gz",
        ]

    def test_extract_failure(self, fake_runtime, base_env, tmp_path) -> None:
        fake_runtime.failures[STAGE_LABEL] = (2, "tar: invalid magic")
        with fake_runtime.open_workspace(base_env) as env:
            with pytest.raises(StagingError, match="解压失败") as exc:
                ArtifactStager(fake_runtime).stage(env, Artifact(_make_archive(tmp_path)))
        assert "invalid magic" in exc.value.output

    def test_leftover_archive(self, fake_runtime, base_env, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(fake_runtime, "exists", lambda env, path: True)
        with fake_runtime.open_workspace(base_env) as env:
            with pytest.raises(StagingError, match="未被清理"):
                ArtifactStager(fake_runtime).stage(env, Artifact(_make_archive(tmp_path)))

    def test_runtime_error_mapped(self, fake_runtime, base_env, tmp_path) -> None:
        def _boom(_cancel):
            raise ExecutionError("docker 不可用")

        fake_runtime.hooks[STAGE_LABEL] = _boom
        with fake_runtime.open_workspace(base_env) as env:
            with pytest.raises(StagingError, match="docker 不可用"):
                ArtifactStager(fake_runtime).stage(env, Artifact(_make_archive(tmp_path)))

    def test_cancel_propagates(self, fake_runtime, base_env, tmp_path) -> None:
        token = CancelToken()
        fake_runtime.hooks[STAGE_LABEL] = lambda cancel: cancel.cancel("用户中断")
        with fake_runtime.open_workspace(base_env) as env:
            with pytest.raises(PipelineCancelled):
                ArtifactStager(fake_runtime).stage(env, Artifact(_make_archive(tmp_path)), token)


class TestStagerWithLocalRuntime:
    def test_extracts_and_removes_archive(self, tmp_path, base_env) -> None:
        runtime = LocalRuntime(workspace_root=str(tmp_path / "ws"))
        artifact = _make_archive(tmp_path)
        with runtime.open_workspace(base_env) as env:
            env = ArtifactStager(runtime).stage(env, Artifact(artifact))
            assert not runtime.exists(env, STAGING_NAME)
            index = env.workspace.host_path("/workspace/lambda/index.js")
            assert index.read_text(encoding="utf-8") == "exports.handler = 'built';\n"

    def test_corrupt_archive(self, tmp_path, base_env) -> None:
        bogus = tmp_path / "bogus.tar.gz"
        bogus.write_bytes(b"not a tarball")
        runtime = LocalRuntime(workspace_root=str(tmp_path / "ws"))
        with runtime.open_workspace(base_env) as env:
            with pytest.raises(StagingError) as exc:
                ArtifactStager(runtime).stage(env, Artifact(BuildArtifact.from_path(bogus)))
        assert exc.value.code == "STAGING_ERROR"
