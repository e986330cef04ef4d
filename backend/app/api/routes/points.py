"""
积分路由模块

处理积分相关的 API 端点，包括：
- 管理员手动调整积分
- 查询积分流水（分页）
- 按来源汇总某用户的积分
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app.api.deps import AdminDep, PointsServiceDep, SessionDep
from app.api.errors import MembershipNotFoundError
from app.api.schemas import (
    ApiEnvelope,
    PointsAdjustData,
    PointsAdjustRequest,
    PointsLogData,
    PointsLogPublic,
    PointsSourceSummary,
    PointsSummaryData,
)
from app.core.redis import get_redis
from app.crud import memberships, points_log
from app.enums import PointsSource
from app.services.events import notify_tier_change

router = APIRouter(prefix="/vip", tags=["points"])


@router.post("/points/adjust", response_model=ApiEnvelope)
def adjust_points(
    body: PointsAdjustRequest,
    session: SessionDep,
    service: PointsServiceDep,
    _: AdminDep,
) -> ApiEnvelope:
    """
    手动调整积分（管理接口）

    请求路径: POST /api/v1/vip/points/adjust

    Args:
        body: 用户、变动积分（正数增加，负数扣减）、原因、操作人

    Returns:
        ApiEnvelope: 调整后的余额和等级
    """
    result = service.adjust_points_manually(
        body.user_id, body.delta_points, body.reason, admin_id=body.admin_id
    )
    if result.tier_changed:
        notify_tier_change(session, get_redis(), body.user_id)
    return ApiEnvelope(
        data=PointsAdjustData(
            success=result.success,
            new_balance=result.new_balance,
            new_tier=result.new_tier,
            tier_changed=result.tier_changed,
        )
    )


@router.get("/points-log", response_model=ApiEnvelope)
def list_points_log(
    session: SessionDep,
    user_id: int | None = Query(default=None),
    source: PointsSource | None = Query(default=None),
    page: int = Query(default=1, ge=1),  # 页码，从 1 开始
    page_size: int = Query(default=20, ge=1, le=100),  # 每页数量，1-100
) -> ApiEnvelope:
    """
    查询积分流水（分页）

    按时间倒序排列，可按用户和来源筛选。

    请求路径: GET /api/v1/vip/points-log?user_id=1&source=consumption&page=1&page_size=20
    """
    offset = (page - 1) * page_size
    count = points_log.count_log_entries(session=session, user_id=user_id, source=source)
    rows = points_log.list_log_entries(
        session=session, user_id=user_id, source=source, limit=page_size, offset=offset
    )
    data = [PointsLogPublic.model_validate(row) for row in rows]
    return ApiEnvelope(data=PointsLogData(data=data, count=count))


@router.get("/points-log/{user_id}/summary", response_model=ApiEnvelope)
def points_summary(user_id: int, session: SessionDep) -> ApiEnvelope:
    """
    按来源汇总某用户的积分

    请求路径: GET /api/v1/vip/points-log/{user_id}/summary
    """
    membership = memberships.get_membership(session=session, user_id=user_id)
    if membership is None:
        raise MembershipNotFoundError(user_id)
    by_source = points_log.summary_by_source(session=session, user_id=user_id)
    return ApiEnvelope(
        data=PointsSummaryData(
            user_id=user_id,
            points_balance=membership.points_balance,
            lifetime_points=membership.lifetime_points,
            tier=membership.tier,
            by_source=[PointsSourceSummary(**row) for row in by_source],
        )
    )
