"""
会员路由模块

处理 VIP 会员相关的 API 端点，包括：
- 会员列表（按等级/状态筛选，按累计积分排序）
- 开通会员
- 会员详情（含距下一等级所需积分）
- 管理员修改等级或状态
- 按流水对账
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app.api.deps import AdminDep, PointsServiceDep, SessionDep
from app.api.errors import MembershipNotFoundError, UserNotFoundError
from app.api.schemas import (
    ApiEnvelope,
    MembershipCreateRequest,
    MembershipDetailData,
    MembershipPublic,
    MembershipsData,
    MembershipUpdateRequest,
    ReconcileData,
)
from app.core.redis import get_redis
from app.crud import memberships
from app.crud.point_rules import PointRuleStore
from app.enums import MembershipStatus, VipTier
from app.models import User
from app.services.events import notify_tier_change
from app.services.tiers import load_ladder

router = APIRouter(prefix="/vip/memberships", tags=["memberships"])


@router.get("", response_model=ApiEnvelope)
def list_memberships(
    session: SessionDep,
    tier: VipTier | None = Query(default=None),
    status: MembershipStatus | None = Query(default=None),
    page: int = Query(default=1, ge=1),  # 页码，从 1 开始
    page_size: int = Query(default=20, ge=1, le=100),  # 每页数量，1-100
) -> ApiEnvelope:
    """
    查询会员列表（分页）

    请求路径: GET /api/v1/vip/memberships?tier=gold&page=1&page_size=20
    """
    offset = (page - 1) * page_size
    count = memberships.count_memberships(session=session, tier=tier, status=status)
    rows = memberships.list_memberships(
        session=session, tier=tier, status=status, limit=page_size, offset=offset
    )
    data = [MembershipPublic.model_validate(row) for row in rows]
    return ApiEnvelope(data=MembershipsData(data=data, count=count))


@router.post("", response_model=ApiEnvelope)
def create_membership(
    body: MembershipCreateRequest, session: SessionDep, _: AdminDep
) -> ApiEnvelope:
    """
    开通会员（管理接口），已开通时返回现有会员

    请求路径: POST /api/v1/vip/memberships
    """
    if session.get(User, body.user_id) is None:
        raise UserNotFoundError(body.user_id)
    ladder = load_ladder(PointRuleStore(session))
    membership = memberships.create_membership(
        session=session, user_id=body.user_id, tier=ladder.lowest_tier
    )
    return ApiEnvelope(data=MembershipPublic.model_validate(membership))


@router.get("/{user_id}", response_model=ApiEnvelope)
def get_membership(user_id: int, session: SessionDep) -> ApiEnvelope:
    """
    查询会员详情

    请求路径: GET /api/v1/vip/memberships/{user_id}

    Returns:
        ApiEnvelope: 会员账户、下一等级、距下一等级所需积分
    """
    membership = memberships.get_membership(session=session, user_id=user_id)
    if membership is None:
        raise MembershipNotFoundError(user_id)
    ladder = load_ladder(PointRuleStore(session))
    return ApiEnvelope(
        data=MembershipDetailData(
            membership=MembershipPublic.model_validate(membership),
            next_tier=ladder.next_tier(ladder.compute_tier(membership.lifetime_points)),
            points_to_next_tier=ladder.points_to_next_tier(membership.lifetime_points),
        )
    )


@router.put("/{user_id}", response_model=ApiEnvelope)
def update_membership(
    user_id: int,
    body: MembershipUpdateRequest,
    session: SessionDep,
    _: AdminDep,
) -> ApiEnvelope:
    """
    修改会员等级或状态（管理接口）

    请求路径: PUT /api/v1/vip/memberships/{user_id}
    """
    membership = memberships.update_membership(
        session=session, user_id=user_id, tier=body.tier, status=body.status
    )
    return ApiEnvelope(data=MembershipPublic.model_validate(membership))


@router.post("/{user_id}/reconcile", response_model=ApiEnvelope)
def reconcile_membership(
    user_id: int,
    session: SessionDep,
    service: PointsServiceDep,
    _: AdminDep,
) -> ApiEnvelope:
    """
    按积分流水重放修复会员账户（管理接口）

    PartialFailureError 之后的恢复手段，重复调用是安全的。

    请求路径: POST /api/v1/vip/memberships/{user_id}/reconcile
    """
    before = memberships.get_membership(session=session, user_id=user_id)
    tier_before = VipTier(before.tier) if before is not None else None
    result = service.reconcile_membership(user_id)
    if tier_before is not None and result.tier != tier_before:
        notify_tier_change(session, get_redis(), user_id)
    return ApiEnvelope(
        data=ReconcileData(
            user_id=result.user_id,
            balance_before=result.balance_before,
            balance_after=result.balance_after,
            lifetime_before=result.lifetime_before,
            lifetime_after=result.lifetime_after,
            tier=result.tier,
            corrected=result.corrected,
        )
    )
