"""集中配置管理

提供统一的配置入口：镜像、运行时、IaC 引擎、超时与目录。
支持从 YAML 文件加载 + 编程式覆盖。不提供进程级单例，
由 CLI 每次调用显式构造并注入 ServiceContainer。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from shorturl_ci.core.exceptions import ConfigError
from shorturl_ci.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

RUNTIMES = ("docker", "local")


@dataclass
class Config:
    """流水线全局配置"""

    # 运行时
    runtime: str = "docker"
    docker_binary: str = "docker"
    workspace_root: str = ""     # 私有工作空间的父目录，空则使用系统临时目录

    # 镜像
    base_image: str = "alpine:latest"
    node_image: str = "node:18-slim"
    curl_image: str = "curlimages/curl:latest"
    iac_image: str = "ghcr.io/opentofu/opentofu:latest"

    # IaC
    iac_binary: str = "tofu"
    plan_file: str = "tfplan"

    # 执行
    phase_timeout: int = 3600    # 秒，单个阶段
    artifact_dir: str = "dist"

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.runtime not in RUNTIMES:
            raise ConfigError(
                f"不支持的运行时: {self.runtime}（可选: {', '.join(RUNTIMES)}）"
            )
        if not self.plan_file or Path(self.plan_file).name != self.plan_file:
            raise ConfigError(f"plan_file 必须是不含目录的文件名: {self.plan_file!r}")
        if int(self.phase_timeout) <= 0:
            raise ConfigError("phase_timeout 必须为正整数")

    @classmethod
    def from_file(cls, path: str | Path = "configs/default.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in fields(cls)} - {"extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"配置文件无效: {path} ({e})") from e
        cfg.extra = extra
        logger.info("配置已加载: %s", path)
        return cfg

    def override(self, **changes: Any) -> Config:
        """返回应用了非空覆盖项的新配置"""
        changes = {k: v for k, v in changes.items() if v not in (None, "")}
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict:
        return asdict(self)
