"""核心数据模型

所有核心数据类集中定义，服务层、运行时与 CLI 统一从此处导入。
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Union

from shorturl_ci.core.exceptions import ConfigError

if TYPE_CHECKING:
    from shorturl_ci.runtime.base import Workspace

# =========================================================================
# 部署配置与默认值
# =========================================================================

DEFAULT_REGION = "us-east-1"
DEFAULT_ENVIRONMENT = "dev"
DEFAULT_RELEASE_NAME = "shorturl"
DEFAULT_NAMESPACE = "shorturl"


def _or_default(value: str | None, default: str) -> str:
    return value if value else default


@dataclass(frozen=True)
class DeploymentConfig:
    """一次部署的已解析配置 — 只能通过 resolve() 构造，解析后不可变"""

    region: str = DEFAULT_REGION
    environment: str = DEFAULT_ENVIRONMENT
    release_name: str = DEFAULT_RELEASE_NAME
    namespace: str = DEFAULT_NAMESPACE

    @classmethod
    def resolve(
        cls,
        *,
        region: str | None = None,
        environment: str | None = None,
        release_name: str | None = None,
        namespace: str | None = None,
    ) -> DeploymentConfig:
        """None 与空字符串一律回落到固定默认值"""
        return cls(
            region=_or_default(region, DEFAULT_REGION),
            environment=_or_default(environment, DEFAULT_ENVIRONMENT),
            release_name=_or_default(release_name, DEFAULT_RELEASE_NAME),
            namespace=_or_default(namespace, DEFAULT_NAMESPACE),
        )


# =========================================================================
# 凭据
# =========================================================================


class Secret:
    """不透明凭据句柄

    只能通过 reveal() 取值；repr/str 不包含明文，避免进入日志或报告。
    引用格式:
      - env:NAME   从当前进程环境变量读取
      - file:PATH  从文件读取（去掉末尾换行）
    """

    __slots__ = ("name", "_value")

    def __init__(self, name: str, value: str) -> None:
        self.name = name
        self._value = value

    @classmethod
    def from_ref(cls, name: str, ref: str) -> Secret:
        if ref.startswith("env:"):
            var = ref[len("env:"):]
            value = os.environ.get(var)
            if value is None:
                raise ConfigError(f"凭据 {name} 引用的环境变量未设置: {var}")
            return cls(name, value)
        if ref.startswith("file:"):
            path = Path(ref[len("file:"):]).expanduser()
            try:
                value = path.read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigError(f"凭据 {name} 文件不可读: {path} ({e})") from e
            return cls(name, value.rstrip("\r\n"))
        raise ConfigError(f"凭据 {name} 引用格式无效，应为 env:NAME 或 file:PATH")

    def reveal(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"Secret({self.name!r})"

    __str__ = __repr__


def mask_secrets(text: str, secrets: Iterable[Secret]) -> str:
    """把文本中出现的凭据明文替换为 ***

    先替换较长的值，一个凭据是另一个的子串时也不会残留明文。
    """
    values = sorted({s.reveal() for s in secrets if s.reveal()}, key=len, reverse=True)
    for value in values:
        text = text.replace(value, "***")
    return text


# =========================================================================
# 构建产物
# =========================================================================


@dataclass(frozen=True)
class BuildArtifact:
    """上游构建阶段产出的压缩包（内容 + 身份）"""

    path: Path
    digest: str
    version: str = ""

    @property
    def name(self) -> str:
        return self.path.name

    @classmethod
    def from_path(cls, path: str | Path, version: str = "") -> BuildArtifact:
        p = Path(path)
        if not p.is_file():
            raise ConfigError(f"构建产物不存在: {p}")
        h = hashlib.sha256()
        with p.open("rb") as f:
            for chunk in iter(lambda: f.read(1 << 16), b""):
                h.update(chunk)
        return cls(path=p, digest=h.hexdigest(), version=version)


@dataclass(frozen=True)
class NoArtifact:
    """暂存输入：没有构建产物"""


@dataclass(frozen=True)
class Artifact:
    """暂存输入：携带一个构建产物"""

    artifact: BuildArtifact


StagingInput = Union[NoArtifact, Artifact]


def staging_input(artifact: BuildArtifact | None) -> StagingInput:
    return NoArtifact() if artifact is None else Artifact(artifact)


# =========================================================================
# 执行环境
# =========================================================================


@dataclass(frozen=True)
class Mount:
    """宿主目录 → 容器路径挂载"""

    target: str
    source: Path


@dataclass(frozen=True)
class ExecutionEnvironment:
    """执行环境 — 不可变值，每次修改返回新实例

    layers 记录已经施加的变更步骤；工作空间据此拒绝过期的环境，
    保证每个阶段都基于上一阶段产出的环境运行。
    """

    image: str
    workdir: str = "/"
    env_vars: dict[str, str] = field(default_factory=dict)
    secrets: dict[str, Secret] = field(default_factory=dict)
    mounts: tuple[Mount, ...] = ()
    layers: tuple[str, ...] = ()
    workspace: Workspace | None = field(default=None, compare=False, repr=False)

    def with_directory(self, target: str, source: str | Path) -> ExecutionEnvironment:
        mounts = tuple(m for m in self.mounts if m.target != target)
        return replace(self, mounts=(*mounts, Mount(target, Path(source))))

    def with_workdir(self, path: str) -> ExecutionEnvironment:
        return replace(self, workdir=path)

    def with_env_variable(self, name: str, value: str) -> ExecutionEnvironment:
        return replace(self, env_vars={**self.env_vars, name: value})

    def with_secret_variable(self, name: str, secret: Secret) -> ExecutionEnvironment:
        return replace(self, secrets={**self.secrets, name: secret})

    def with_layer(self, label: str) -> ExecutionEnvironment:
        return replace(self, layers=(*self.layers, label))

    def bound(self, workspace: Workspace | None) -> ExecutionEnvironment:
        return replace(self, workspace=workspace)

    def describe(self) -> dict[str, Any]:
        """日志友好的摘要，凭据只列名称"""
        return {
            "image": self.image,
            "workdir": self.workdir,
            "env": dict(self.env_vars),
            "secrets": sorted(self.secrets),
            "mounts": {m.target: str(m.source) for m in self.mounts},
        }


# =========================================================================
# 阶段
# =========================================================================


@dataclass(frozen=True)
class Phase:
    """一个有名字的外部命令步骤

    produces: 阶段成功后必须出现在工作目录下的文件
    requires: 阶段开始前必须已存在于工作目录下的文件
    """

    label: str
    args: tuple[str, ...]
    produces: str = ""
    requires: str = ""


@dataclass
class PhaseResult:
    """单个阶段的捕获输出"""

    label: str
    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0
    artifact: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        if not self.stderr:
            return self.stdout
        if not self.stdout:
            return self.stderr
        return f"{self.stdout.rstrip()}\n{self.stderr}"
