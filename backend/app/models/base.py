"""
基础模型模块

定义所有模型共用的基础类和工具函数。
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel


def utc_now() -> datetime:
    """获取当前 UTC 时间"""
    return datetime.now(timezone.utc)


def timestamp_column() -> Column:
    """带时区的非空时间列，每个字段需要独立的 Column 实例"""
    return Column(DateTime(timezone=True), nullable=False)


__all__ = ["SQLModel", "utc_now", "timestamp_column"]
