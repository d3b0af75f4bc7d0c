"""测试共享 fixture — 假运行时 + 源码树

FakeRuntime 实现 ContainerRuntime 协议，不启动任何进程：
- calls 记录 (label, args) 调用顺序，用于断言阶段顺序与 fail-fast
- files 记录环境内存在的文件（按容器路径），模拟 plan 文件、暂存包等副作用
- outputs / failures / hooks 按阶段 label 定制行为
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

import pytest

from shorturl_ci.core.cancel import CancelToken
from shorturl_ci.core.models import ExecutionEnvironment, Secret
from shorturl_ci.runtime.base import Workspace, resolve_path
from shorturl_ci.utils.shell import CommandResult


class FakeRuntime:
    """记录调用顺序的假运行时"""

    name = "fake"

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[str]]] = []
        self.files: set[str] = set()
        self.outputs: dict[str, str] = {}
        self.failures: dict[str, tuple[int, str]] = {}
        self.hooks: dict[str, Callable[[CancelToken | None], None]] = {}
        self.environments: list[ExecutionEnvironment] = []
        self.opened = 0
        self.closed = 0

    @property
    def labels(self) -> list[str]:
        return [label for label, _ in self.calls if label != "copy"]

    def args_of(self, label: str) -> list[str]:
        return next(args for lbl, args in self.calls if lbl == label)

    @contextmanager
    def open_workspace(self, env: ExecutionEnvironment) -> Iterator[ExecutionEnvironment]:
        ws = Workspace(Path("/fake"), {m.target: Path("/fake") / m.target.strip("/") for m in env.mounts})
        bound = env.bound(ws)
        ws.head = bound.layers
        self.opened += 1
        try:
            yield bound
        finally:
            self.closed += 1

    def copy_in(self, env: ExecutionEnvironment, source: Path, dest: str) -> ExecutionEnvironment:
        ws = env.workspace
        ws.check(env)
        self.calls.append(("copy", [str(source), dest]))
        self.files.add(resolve_path(env, dest))
        return ws.advance(env, f"copy:{dest}")

    def exists(self, env: ExecutionEnvironment, path: str) -> bool:
        return resolve_path(env, path) in self.files

    def export(self, env: ExecutionEnvironment, path: str, dest: Path) -> Path:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(b"fake-archive")
        return dest

    def exec(
        self,
        env: ExecutionEnvironment,
        args: list[str],
        *,
        label: str,
        cancel: CancelToken | None = None,
    ) -> tuple[ExecutionEnvironment, CommandResult]:
        ws = env.workspace
        ws.check(env)
        self.calls.append((label, list(args)))
        self.environments.append(env)
        if label in self.hooks:
            self.hooks[label](cancel)
        if cancel is not None:
            cancel.raise_if_cancelled(label)

        rc, stderr = self.failures.get(label, (0, ""))
        if rc == 0:
            self._apply_effects(env, label, args)
        stdout = self.outputs.get(label, f"{label} ok\n")
        return ws.advance(env, label), CommandResult(rc, stdout, stderr)

    def _apply_effects(self, env: ExecutionEnvironment, label: str, args: list[str]) -> None:
        for a in args:
            if a.startswith("-out="):
                self.files.add(resolve_path(env, a[len("-out="):]))
        if label == "stage-artifact":
            self.files.discard(resolve_path(env, "lambda-deployment.tar.gz"))
            self.files.add(resolve_path(env, "lambda/index.js"))
        if label == "package":
            self.files.add(resolve_path(env, args[2]))


@pytest.fixture()
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture()
def source_tree(tmp_path: Path) -> Path:
    """最小的 shorturl 源码树：terraform/ + lambda/ + tests/ + VERSION"""
    src = tmp_path / "src"
    (src / "terraform").mkdir(parents=True)
    (src / "terraform" / "main.tf").write_text("# infra\n", encoding="utf-8")
    (src / "lambda").mkdir()
    (src / "lambda" / "index.js").write_text("exports.handler = async () => ({});\n", encoding="utf-8")
    (src / "tests").mkdir()
    (src / "VERSION").write_text("1.2.3\n", encoding="utf-8")
    return src


@pytest.fixture()
def aws_secrets() -> tuple[Secret, Secret]:
    return Secret("aws_access_key_id", "AKIATESTKEY"), Secret("aws_secret_access_key", "s3cr3t-value")
