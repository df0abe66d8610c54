"""
计划请求入参 Schema（Pydantic 模型）。

职责：
- 定义 SIP/STP/SWP 创建请求与修改请求的结构
- 提供字段级校验（金额 > 0、期数 > 0、基金 ID 为正、频率枚举）

设计原则：
- 只做与时间无关的静态校验；"起始日必须在未来"依赖业务时钟，由 flows.plan 负责
- 金额统一为 Decimal 并量化到 2 位小数
- 禁止多余字段：修改请求只能改 amount/frequency/installments
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_CENT = Decimal("0.01")


def _quantize_amount(value: Decimal) -> Decimal:
    amount = value.quantize(_CENT, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise ValueError("金额必须大于 0")
    return amount


class _PlanRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: Decimal = Field(..., gt=0, description="每期金额（> 0）")
    start_date: date = Field(..., description="首期执行日 YYYY-MM-DD")
    frequency: Literal["Monthly", "Quarterly"] = Field(..., description="执行频率")
    installments: int = Field(..., gt=0, description="总期数（> 0）")

    @field_validator("amount")
    @classmethod
    def _check_amount(cls, value: Decimal) -> Decimal:
        return _quantize_amount(value)


class SipPlanRequest(_PlanRequest):
    """
    SIP 创建参数。

    用于 create_sip_plan。
    """

    scheme_id: int = Field(..., gt=0, description="申购基金 ID")


class SwpPlanRequest(_PlanRequest):
    """
    SWP 创建参数。

    用于 create_swp_plan。
    """

    scheme_id: int = Field(..., gt=0, description="赎回基金 ID")


class StpPlanRequest(_PlanRequest):
    """
    STP 创建参数。

    用于 create_stp_plan；转出与转入基金必须不同。
    """

    source_scheme_id: int = Field(..., gt=0, description="转出基金 ID")
    target_scheme_id: int = Field(..., gt=0, description="转入基金 ID")

    @model_validator(mode="after")
    def _check_distinct_schemes(self) -> StpPlanRequest:
        if self.source_scheme_id == self.target_scheme_id:
            raise ValueError("转出与转入基金必须不同")
        return self


class ModifyPlanRequest(BaseModel):
    """
    修改计划参数（部分更新）。

    只允许修改 amount / frequency / installments，至少提供一项。
    """

    model_config = ConfigDict(extra="forbid")

    amount: Decimal | None = Field(None, gt=0, description="新的每期金额")
    frequency: Literal["Monthly", "Quarterly"] | None = Field(None, description="新的频率")
    installments: int | None = Field(None, gt=0, description="新的总期数")

    @field_validator("amount")
    @classmethod
    def _check_amount(cls, value: Decimal | None) -> Decimal | None:
        return _quantize_amount(value) if value is not None else None

    @model_validator(mode="after")
    def _check_not_empty(self) -> ModifyPlanRequest:
        if self.amount is None and self.frequency is None and self.installments is None:
            raise ValueError("至少需要修改 amount/frequency/installments 中的一项")
        return self

    def changes(self) -> dict:
        """返回实际提供的字段。"""
        return self.model_dump(exclude_none=True)
