"""
消费与签到路由模块

- 查询消费记录
- 录入消费并按规则发放积分
- 活动签到发放积分
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app import crud
from app.api.deps import AdminDep, PointsServiceDep, SessionDep
from app.api.errors import UserNotFoundError
from app.api.schemas import (
    ApiEnvelope,
    CheckinRequest,
    ConsumptionCreateData,
    ConsumptionCreateRequest,
    ConsumptionPublic,
    ConsumptionsData,
    PointsAwardData,
)
from app.core.config import settings
from app.core.redis import get_redis
from app.models import User
from app.services.events import notify_tier_change

router = APIRouter(prefix="/vip", tags=["consumptions"])


@router.get("/consumptions", response_model=ApiEnvelope)
def list_consumptions(
    session: SessionDep,
    user_id: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),  # 页码，从 1 开始
    page_size: int = Query(default=20, ge=1, le=100),  # 每页数量，1-100
) -> ApiEnvelope:
    """
    查询消费记录（分页，按时间倒序）

    请求路径: GET /api/v1/vip/consumptions?user_id=1&page=1&page_size=20
    """
    offset = (page - 1) * page_size
    rows, count = crud.consumptions.list_consumptions(
        session=session, user_id=user_id, limit=page_size, offset=offset
    )
    data = [ConsumptionPublic.model_validate(row) for row in rows]
    return ApiEnvelope(data=ConsumptionsData(data=data, count=count))


@router.post("/consumptions", response_model=ApiEnvelope)
def create_consumption(
    body: ConsumptionCreateRequest,
    session: SessionDep,
    service: PointsServiceDep,
    _: AdminDep,
) -> ApiEnvelope:
    """
    录入消费并发放积分（管理接口）

    先写入消费记录，再调用积分服务按消费规则发放积分。
    等级发生变化时发布等级变更事件。

    请求路径: POST /api/v1/vip/consumptions

    Args:
        body: 用户、金额、币种、关联活动
        session: 数据库会话
        service: 积分服务

    Returns:
        ApiEnvelope: 消费记录和积分发放结果
    """
    if session.get(User, body.user_id) is None:
        raise UserNotFoundError(body.user_id)
    currency = body.currency or settings.DEFAULT_CURRENCY
    consumption = crud.consumptions.create(
        session=session,
        user_id=body.user_id,
        amount=body.amount,
        currency=currency,
        event_id=body.event_id,
        description=body.description,
    )
    consumption_data = ConsumptionPublic.model_validate(consumption)

    result = service.process_consumption(
        body.user_id, body.amount, currency=currency, consumption_id=consumption_data.id
    )
    if result.tier_changed:
        notify_tier_change(session, get_redis(), body.user_id)
    return ApiEnvelope(
        data=ConsumptionCreateData(
            consumption=consumption_data,
            points=PointsAwardData(
                points_awarded=result.points_awarded,
                new_balance=result.new_balance,
                new_tier=result.new_tier,
                tier_changed=result.tier_changed,
            ),
        )
    )


@router.post("/checkins", response_model=ApiEnvelope)
def checkin(
    body: CheckinRequest,
    session: SessionDep,
    service: PointsServiceDep,
    _: AdminDep,
) -> ApiEnvelope:
    """
    活动签到发放积分（管理接口）

    请求路径: POST /api/v1/vip/checkins
    """
    result = service.process_event_checkin(
        body.user_id, event_id=body.event_id, checkin_id=body.checkin_id
    )
    if result.tier_changed:
        notify_tier_change(session, get_redis(), body.user_id)
    return ApiEnvelope(
        data=PointsAwardData(
            points_awarded=result.points_awarded,
            new_balance=result.new_balance,
            new_tier=result.new_tier,
            tier_changed=result.tier_changed,
        )
    )
