"""
用户模型模块

VIP 会员、积分流水和消费记录都归属于一个用户。
"""
from datetime import datetime

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel

from .base import timestamp_column, utc_now


class User(SQLModel, table=True):
    """
    用户模型

    字段说明：
    - id: 主键
    - name: 用户姓名
    - email: 邮箱（唯一且建立索引）
    - created_at / updated_at: 创建和更新时间
    """
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=128)
    email: str = Field(
        max_length=255,
        sa_column=Column(String(255), unique=True, index=True, nullable=False),
    )

    created_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utc_now, sa_column=timestamp_column())
