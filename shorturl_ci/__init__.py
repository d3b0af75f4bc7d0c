"""shorturl-ci — 短链接服务的 CI/CD 流水线"""

__version__ = "0.1.0"
