"""
请求 Schema（Pydantic 模型）。

- requests: 创建/修改计划的入参校验
"""

from .requests import (
    ModifyPlanRequest,
    SipPlanRequest,
    StpPlanRequest,
    SwpPlanRequest,
)

__all__ = [
    "SipPlanRequest",
    "StpPlanRequest",
    "SwpPlanRequest",
    "ModifyPlanRequest",
]
