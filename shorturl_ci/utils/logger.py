"""流水线日志配置

文本格式面向终端，JSON 格式面向 CI 日志收集。阶段相关的记录通过
extra={"phase": label} 携带阶段标签，两种格式都会输出该字段。
日志一律写 stderr，stdout 只留给阶段报告。
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TextIO

LEVEL_ENV = "SHORTURL_CI_LOG_LEVEL"
JSON_ENV = "SHORTURL_CI_LOG_JSON"

TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(phase_tag)s%(name)s: %(message)s"


class PhaseFilter(logging.Filter):
    """补齐 phase / phase_tag 字段，未携带阶段的记录也能按格式串渲染"""

    def filter(self, record: logging.LogRecord) -> bool:
        phase = getattr(record, "phase", "") or ""
        record.phase = phase
        record.phase_tag = f"[{phase}] " if phase else ""
        return True


class JSONFormatter(logging.Formatter):
    """每条记录一行 JSON

    字段: timestamp / level / logger / message，
    可选 phase（阶段标签）与 exception（异常堆栈）。
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        phase = getattr(record, "phase", "")
        if phase:
            entry["phase"] = phase
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(
    level: str = "INFO", json_output: bool = False, stream: TextIO | None = None,
) -> None:
    """配置根日志器

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR, CRITICAL），
            无法识别时按 INFO 处理
        json_output: 为 True 时每条记录输出一行 JSON（适用于 CI 日志收集）
        stream: 输出流，默认 stderr

    说明:
        - 先清理已有 handlers，重复调用不会重复输出
        - 携带 extra={"phase": label} 的记录在文本格式中显示为 [label]，
          在 JSON 格式中输出 phase 字段

    示例:
        >>> setup_logging("DEBUG")
        >>> setup_logging("INFO", json_output=True)  # CI 环境
    """
    reset_logging()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.addFilter(PhaseFilter())
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)


def setup_from_env(environ: Mapping[str, str] | None = None) -> None:
    """按 SHORTURL_CI_LOG_LEVEL / SHORTURL_CI_LOG_JSON 配置日志"""
    env = os.environ if environ is None else environ
    setup_logging(
        level=env.get(LEVEL_ENV, "INFO"),
        json_output=env.get(JSON_ENV, "") == "1",
    )


def reset_logging() -> None:
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
