"""
NFC 卡模型模块

实体卡片上的 metadata 会随会员等级变化而重写，由 nfc_sync_worker 负责同步。
"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, ForeignKey, Integer, String
from sqlmodel import Field, SQLModel

from .base import timestamp_column, utc_now


class NFCCard(SQLModel, table=True):
    """
    NFC 卡模型

    字段说明：
    - card_uid: 卡片物理 UID（唯一）
    - user_id: 持卡用户
    - is_active: 是否启用（停用的卡不再同步）
    - meta: 卡片元数据（数据库列名为 metadata），包含 vip_tier 等信息
    """
    __tablename__ = "nfc_cards"
    id: int | None = Field(default=None, primary_key=True)
    card_uid: str = Field(
        max_length=64,
        sa_column=Column(String(64), unique=True, index=True, nullable=False),
    )
    user_id: int = Field(
        sa_column=Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    )
    is_active: bool = Field(default=True)
    meta: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON, nullable=False)
    )

    created_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())
