"""YAML 映射文件读取

配置文件与测试场景文件共用。文件不存在或为空视为空映射；
超限、无法读取、格式错误、顶层不是映射都抛 ConfigError。
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from shorturl_ci.core.exceptions import ConfigError

# 配置与场景文件都远小于此
MAX_YAML_SIZE = 1024 * 1024


def load_yaml(path: str | Path, *, max_size: int = MAX_YAML_SIZE) -> dict[str, Any]:
    """读取 YAML 映射文件

    参数:
        path: 文件路径
        max_size: 文件大小上限（字节）

    返回:
        顶层映射；文件不存在或内容为空时返回 {}

    异常:
        ConfigError: 文件超限、无法读取、格式错误（附行号）或顶层不是映射

    示例:
        >>> load_yaml("configs/default.yml").get("runtime")
        'docker'
    """
    p = Path(path)
    if not p.is_file():
        return {}

    size = p.stat().st_size
    if size > max_size:
        raise ConfigError(f"YAML 文件过大: {p} ({size} 字节，上限 {max_size})")

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"无法读取 {p}: {e}") from e
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" 第 {mark.line + 1} 行" if mark is not None else ""
        raise ConfigError(f"YAML 格式错误: {p}{where}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{p} 顶层必须是映射，实际为 {type(data).__name__}")
    return data
