"""
API 请求/响应数据模型（Schema）

定义所有 API 接口的请求和响应数据结构。
使用 Pydantic 进行数据验证和序列化。

关键概念：
- BaseModel: Pydantic 的模型基类，用于数据验证
- Field: 字段验证器，定义字段的约束（长度、范围等）
- 这些模型不是数据库表，只用于 API 数据交换
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal  # 精确数值类型，用于金额和积分比例
from typing import Any  # 任意类型

from pydantic import BaseModel, ConfigDict, Field  # Pydantic 核心类

from app.enums import MembershipStatus, PointsSource, VipTier

# ============================================================
# 通用响应模型
# ============================================================


class ApiEnvelope(BaseModel):
    """
    API 统一响应格式

    所有 API 响应都使用这个格式，包含：
    - code: 状态码（0 表示成功，非 0 表示错误）
    - message: 消息（成功时为 "success"，错误时为错误描述）
    - data: 数据（成功时返回业务数据，错误时为 None 或错误详情）

    示例响应：
        {"code": 0, "message": "success", "data": {...}}
        {"code": 404101, "message": "Point rule not found: consumption", "data": None}
    """
    code: int = 0  # 默认成功
    message: str = "success"  # 默认成功消息
    data: Any | None = None  # 业务数据（可选）


class _OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ============================================================
# 用户
# ============================================================


class UserCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")


class UserPublic(_OrmModel):
    id: int
    name: str
    email: str
    created_at: datetime


# ============================================================
# 积分规则
# ============================================================


class PointRuleCreateRequest(BaseModel):
    """
    创建积分规则请求模型

    积分 = 金额 * points_per_unit / unit_size，
    例如 points_per_unit=1, unit_size=3 表示每消费 3 欧元得 1 积分。
    """
    action_type: str = Field(min_length=1, max_length=64)  # 业务动作，全局唯一
    points_per_unit: Decimal = Field(gt=0)
    unit: str = Field(default="EUR", min_length=1, max_length=32)
    unit_size: Decimal = Field(default=Decimal("1"), gt=0)
    is_active: bool = True


class PointRuleUpdateRequest(BaseModel):
    """更新积分规则请求模型，只更新传入的字段"""
    points_per_unit: Decimal | None = Field(default=None, gt=0)
    unit: str | None = Field(default=None, min_length=1, max_length=32)
    unit_size: Decimal | None = Field(default=None, gt=0)
    is_active: bool | None = None


class PointRulePublic(_OrmModel):
    id: int
    action_type: str
    points_per_unit: Decimal
    unit: str
    unit_size: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ============================================================
# 会员
# ============================================================


class MembershipCreateRequest(BaseModel):
    user_id: int = Field(ge=1)


class MembershipUpdateRequest(BaseModel):
    """管理员修改会员等级或状态（等级会在下次积分变动时按累计积分重新计算）"""
    tier: VipTier | None = None
    status: MembershipStatus | None = None


class MembershipPublic(_OrmModel):
    id: int
    user_id: int
    points_balance: int  # 可用积分
    lifetime_points: int  # 累计获得积分（决定等级）
    tier: VipTier
    status: MembershipStatus
    created_at: datetime
    updated_at: datetime


class MembershipDetailData(BaseModel):
    """会员详情：账户信息 + 距下一等级所需积分"""
    membership: MembershipPublic
    next_tier: VipTier | None = None  # 已是最高等级时为 None
    points_to_next_tier: int | None = None


class MembershipsData(BaseModel):
    data: list[MembershipPublic]
    count: int


class ReconcileData(BaseModel):
    user_id: int
    balance_before: int
    balance_after: int
    lifetime_before: int
    lifetime_after: int
    tier: VipTier
    corrected: bool  # 账户是否与流水不一致并被修正


# ============================================================
# 消费 / 签到 / 手动调整
# ============================================================


class ConsumptionCreateRequest(BaseModel):
    """
    创建消费记录请求模型

    先写入消费记录，再按积分规则为用户发放积分。
    """
    user_id: int = Field(ge=1)
    amount: Decimal = Field(gt=0)  # 消费金额，必须大于 0
    currency: str | None = Field(default=None, min_length=1, max_length=8)
    event_id: str | None = Field(default=None, max_length=64)
    description: str | None = Field(default=None, max_length=255)


class ConsumptionPublic(_OrmModel):
    id: int
    user_id: int
    event_id: str | None = None
    amount: Decimal
    currency: str
    description: str | None = None
    created_at: datetime


class ConsumptionsData(BaseModel):
    data: list[ConsumptionPublic]
    count: int


class PointsAwardData(BaseModel):
    """积分发放结果"""
    points_awarded: int
    new_balance: int
    new_tier: VipTier
    tier_changed: bool


class ConsumptionCreateData(BaseModel):
    consumption: ConsumptionPublic
    points: PointsAwardData


class CheckinRequest(BaseModel):
    user_id: int = Field(ge=1)
    event_id: str | None = Field(default=None, max_length=64)
    checkin_id: str | None = Field(default=None, max_length=64)


class PointsAdjustRequest(BaseModel):
    """
    手动调整积分请求模型

    delta_points 为正表示增加积分，为负表示扣减（扣减不影响累计积分）。
    """
    user_id: int = Field(ge=1)
    delta_points: int  # 非 0 校验由积分服务完成
    reason: str = Field(min_length=1, max_length=255)
    admin_id: str | None = Field(default=None, max_length=64)


class PointsAdjustData(BaseModel):
    success: bool
    new_balance: int
    new_tier: VipTier
    tier_changed: bool


# ============================================================
# 积分流水
# ============================================================


class PointsLogPublic(_OrmModel):
    id: int
    user_id: int
    delta_points: int  # 变动积分（负数表示扣减）
    reason: str
    source: PointsSource
    related_entity_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    created_at: datetime


class PointsLogData(BaseModel):
    data: list[PointsLogPublic]
    count: int


class PointsSourceSummary(BaseModel):
    source: PointsSource
    transaction_count: int
    total_points: int


class PointsSummaryData(BaseModel):
    user_id: int
    points_balance: int
    lifetime_points: int
    tier: VipTier
    by_source: list[PointsSourceSummary]


# ============================================================
# 等级权益
# ============================================================


class TierBenefitCreateRequest(BaseModel):
    tier_name: VipTier
    title: str = Field(min_length=1, max_length=128)
    description: str | None = Field(default=None, max_length=1024)
    is_active: bool = True


class TierBenefitUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = Field(default=None, max_length=1024)
    is_active: bool | None = None


class TierBenefitPublic(_OrmModel):
    id: int
    tier_name: VipTier
    title: str
    description: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
