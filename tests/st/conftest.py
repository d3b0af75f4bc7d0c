"""系统测试共享 fixture — CLI 调用 + 场景模板加载

  scenarios.yml            conftest.py                 test_deploy_scenarios.py
  ┌────────────┐     ┌─────────────────────┐     ┌───────────────────────────┐
  │ baseline   │────>│ load_scenario()     │<────│ run_scenario("C")         │
  │ scenarios: │     │   合并基线与差异    │     │   → (CLI 结果, 假运行时)  │
  │   A/B/C/D  │     │ run_scenario()      │     │ 断言阶段顺序/退出码/输出  │
  └────────────┘     │   配置假运行时      │     └───────────────────────────┘
                     │   调用 deploy 命令  │
                     └─────────────────────┘
"""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from shorturl_ci.cli import main
from shorturl_ci.services.container import ServiceContainer
from shorturl_ci.utils.logger import reset_logging
from shorturl_ci.utils.yaml_io import load_yaml

_SCENARIOS = load_yaml(Path(__file__).parent / "scenarios.yml")


def load_scenario(name: str) -> dict:
    """基线 + 场景差异，返回独立副本"""
    merged = deepcopy(_SCENARIOS["baseline"])
    merged.update(deepcopy(_SCENARIOS["scenarios"][name]))
    return merged


@pytest.fixture(autouse=True)
def _reset_logging():
    """CLI 每次调用都会重新配置根日志器，测试结束后清理"""
    yield
    reset_logging()


@pytest.fixture()
def cli(fake_runtime):
    """以注入假运行时的 ServiceContainer 调用 CLI"""
    runner = CliRunner()

    def _invoke(*args: str) -> Result:
        container = ServiceContainer(runtime=fake_runtime)
        return runner.invoke(main, list(args), obj=container)

    return _invoke


@pytest.fixture()
def aws_env(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """通过环境变量引用传递 AWS 凭据"""
    monkeypatch.setenv("TEST_AWS_KEY_ID", "AKIATESTKEY")
    monkeypatch.setenv("TEST_AWS_SECRET", "s3cr3t-value")
    return [
        "--aws-access-key-id", "env:TEST_AWS_KEY_ID",
        "--aws-secret-access-key", "env:TEST_AWS_SECRET",
    ]


@pytest.fixture()
def run_scenario(cli, fake_runtime, source_tree: Path, aws_env, tmp_path: Path):
    def _run(name: str) -> tuple[Result, dict]:
        sc = load_scenario(name)
        for label, (rc, stderr) in sc["failures"].items():
            fake_runtime.failures[label] = (rc, stderr)
        if sc["cancel_on"]:
            fake_runtime.hooks[sc["cancel_on"]] = lambda cancel: cancel.cancel("SIGINT")

        args = ["deploy", str(source_tree), *aws_env]
        if sc["region"]:
            args += ["--aws-region", sc["region"]]
        if sc["environment"]:
            args += ["--environment", sc["environment"]]
        if sc["artifact"]:
            archive = tmp_path / "dist" / "lambda-deployment.tar.gz"
            archive.parent.mkdir(parents=True, exist_ok=True)
            archive.write_bytes(b"built lambda")
            args += ["--build-artifact", str(archive)]
        return cli(*args), sc

    return _run
