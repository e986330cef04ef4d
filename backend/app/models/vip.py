"""
VIP 会员积分模型模块

定义 VIP 积分体系相关的数据库模型：
- VIPPointRule: 积分规则（action_type -> 每单位积分）
- VIPPointsLog: 积分流水（只追加，不修改、不删除）
- VIPMembership: 会员账户（当前余额、累计积分、等级）
- VIPConsumption: 消费记录
- VIPTierBenefit: 等级权益
"""
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, Numeric, String
from sqlmodel import Field, SQLModel

from app.enums import MembershipStatus, PointsSource, VipTier

from .base import timestamp_column, utc_now


class VIPPointRule(SQLModel, table=True):
    """
    积分规则模型

    每个 action_type 最多一条规则（unique 约束保证）。
    规则只会被停用（is_active=False），不会被删除。

    积分计算：points = 取整(amount * points_per_unit / unit_size)
    例如 points_per_unit=1, unit_size=10 表示每 10 EUR 得 1 分。

    字段说明：
    - action_type: 行为类型（如 "consumption"、"event_checkin"）
    - points_per_unit: 每单位积分（正数）
    - unit: 单位名称（如 "EUR"、"visit"）
    - unit_size: 单位大小（正数，默认 1）
    - is_active: 是否启用
    """
    __tablename__ = "vip_point_rules"
    id: int | None = Field(default=None, primary_key=True)
    action_type: str = Field(
        max_length=64,
        sa_column=Column(String(64), unique=True, index=True, nullable=False),
    )
    points_per_unit: Decimal = Field(sa_column=Column(Numeric(12, 6), nullable=False))
    unit: str = Field(max_length=32)
    unit_size: Decimal = Field(
        default=Decimal("1"), sa_column=Column(Numeric(12, 4), nullable=False)
    )
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())


class VIPPointsLog(SQLModel, table=True):
    """
    积分流水模型

    每次影响积分的事件写入且仅写入一条记录，写入后不可修改。
    用于审计和对账（按 created_at 重放可以还原余额）。

    字段说明：
    - delta_points: 积分变动（负数表示扣除）
    - reason: 变动原因
    - source: 来源（消费 / 手动调整 / 活动签到）
    - related_entity_id: 关联实体 ID（如消费记录 ID、签到 ID）
    - meta: 附加信息（数据库列名为 metadata）
    """
    __tablename__ = "vip_points_log"
    __table_args__ = (Index("idx_points_log_user_created", "user_id", "created_at"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(
        sa_column=Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    )
    delta_points: int = Field(nullable=False)
    reason: str = Field(default="", max_length=255)
    source: PointsSource = Field(sa_column=Column(String(32), nullable=False, index=True))
    related_entity_id: str | None = Field(default=None, max_length=64)
    meta: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON, nullable=False)
    )

    created_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())


class VIPMembership(SQLModel, table=True):
    """
    VIP 会员账户模型

    每个用户最多一条（user_id 唯一）。余额和累计积分只能通过
    crud.memberships.apply_balance_delta 原子增减。

    字段说明：
    - points_balance: 可用积分余额（手动扣减后可能为负）
    - lifetime_points: 累计获得积分（只增不减，决定等级）
    - tier: 当前等级
    - status: 会员状态（不物理删除）
    """
    __tablename__ = "vip_memberships"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("users.id"), unique=True, index=True, nullable=False
        )
    )
    points_balance: int = Field(default=0)
    lifetime_points: int = Field(default=0)
    tier: VipTier = Field(
        default=VipTier.silver, sa_column=Column(String(16), nullable=False)
    )
    status: MembershipStatus = Field(
        default=MembershipStatus.active, sa_column=Column(String(16), nullable=False)
    )

    created_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())


class VIPConsumption(SQLModel, table=True):
    """
    消费记录模型

    由调用方在发放积分之前创建；积分服务只通过 related_entity_id 反向引用它，
    发放积分失败时消费记录不会回滚。
    """
    __tablename__ = "vip_consumptions"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(
        sa_column=Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    )
    event_id: str | None = Field(default=None, max_length=64)
    amount: Decimal = Field(sa_column=Column(Numeric(12, 2), nullable=False))
    currency: str = Field(default="EUR", max_length=8)
    description: str | None = Field(default=None, max_length=255)

    created_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())


class VIPTierBenefit(SQLModel, table=True):
    """等级权益模型（前台展示用，删除为软删除）"""
    __tablename__ = "vip_tier_benefits"
    id: int | None = Field(default=None, primary_key=True)
    tier_name: VipTier = Field(sa_column=Column(String(16), nullable=False, index=True))
    title: str = Field(max_length=128)
    description: str | None = Field(default=None, max_length=1024)
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())
