"""
数据库模型定义模块

本模块使用 SQLModel 定义所有数据库表结构。

模型按功能拆分：
- user.py: 用户模型
- vip.py: VIP 积分规则、积分流水、会员账户、消费记录、等级权益
- nfc.py: NFC 卡模型
"""
from sqlmodel import SQLModel

from .base import utc_now
from .nfc import NFCCard
from .user import User
from .vip import (
    VIPConsumption,
    VIPMembership,
    VIPPointRule,
    VIPPointsLog,
    VIPTierBenefit,
)

__all__ = [
    "SQLModel",
    "utc_now",
    "User",
    "VIPPointRule",
    "VIPPointsLog",
    "VIPMembership",
    "VIPConsumption",
    "VIPTierBenefit",
    "NFCCard",
]
