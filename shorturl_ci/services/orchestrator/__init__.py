"""部署编排模块

- models.py: 状态机、请求与执行记录
- orchestrator.py: 编排器
"""

from shorturl_ci.services.orchestrator.models import (
    DeployRequest,
    DeployRun,
    DeployState,
)
from shorturl_ci.services.orchestrator.orchestrator import DeployOrchestrator

__all__ = [
    "DeployOrchestrator",
    "DeployRequest",
    "DeployRun",
    "DeployState",
]
