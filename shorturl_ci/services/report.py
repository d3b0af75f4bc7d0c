"""结果组装：apply 输出 + 带标签的 outputs 段，原样拼接"""

from __future__ import annotations

OUTPUTS_SEPARATOR = "\n\nOutputs:\n"


def compose_report(apply_output: str, outputs_output: str) -> str:
    return apply_output + OUTPUTS_SEPARATOR + outputs_output
