"""
API 路由聚合模块

将所有业务路由模块聚合到一个统一的 router 中。
这个 router 会被注册到主应用（app/main.py）上。

路由模块说明：
- users: 用户（创建）
- point_rules: 积分规则（查询、创建、更新）
- memberships: 会员（列表、开通、详情、修改、对账）
- consumptions: 消费录入与活动签到（发放积分）
- points: 手动调整积分、积分流水
- tier_benefits: 等级权益
- utils: 工具相关（健康检查等）
"""
from fastapi import APIRouter

from app.api.routes import (
    consumptions,  # 消费与签到路由
    memberships,  # 会员路由
    point_rules,  # 积分规则路由
    points,  # 积分路由
    tier_benefits,  # 等级权益路由
    users,  # 用户路由
    utils,  # 工具路由
)

# 创建主 API 路由器
api_router = APIRouter()

# 注册所有业务路由模块
# 每个模块的路径前缀在各自的 router 中定义
api_router.include_router(users.router)  # /users
api_router.include_router(point_rules.router)  # /vip/point-rules/*
api_router.include_router(memberships.router)  # /vip/memberships/*
api_router.include_router(consumptions.router)  # /vip/consumptions, /vip/checkins
api_router.include_router(points.router)  # /vip/points/*, /vip/points-log/*
api_router.include_router(tier_benefits.router)  # /vip/tier-benefits/*
api_router.include_router(utils.router)  # /utils/*
