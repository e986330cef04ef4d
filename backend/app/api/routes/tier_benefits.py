"""
等级权益路由模块

查询各等级权益，以及管理员维护权益（删除为软删除）。
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app import crud
from app.api.deps import AdminDep, SessionDep
from app.api.schemas import (
    ApiEnvelope,
    TierBenefitCreateRequest,
    TierBenefitPublic,
    TierBenefitUpdateRequest,
)
from app.enums import VipTier

router = APIRouter(prefix="/vip/tier-benefits", tags=["tier-benefits"])


@router.get("", response_model=ApiEnvelope)
def list_benefits(
    session: SessionDep,
    tier: VipTier | None = Query(default=None),
    include_inactive: bool = Query(default=False),
) -> ApiEnvelope:
    """
    查询等级权益，按等级由低到高排列

    请求路径: GET /api/v1/vip/tier-benefits?tier=gold
    """
    rows = crud.tier_benefits.list_benefits(
        session=session, tier=tier, active_only=not include_inactive
    )
    return ApiEnvelope(data=[TierBenefitPublic.model_validate(row) for row in rows])


@router.post("", response_model=ApiEnvelope)
def create_benefit(
    body: TierBenefitCreateRequest, session: SessionDep, _: AdminDep
) -> ApiEnvelope:
    """
    创建等级权益（管理接口）

    请求路径: POST /api/v1/vip/tier-benefits
    """
    benefit = crud.tier_benefits.create(
        session=session,
        tier_name=body.tier_name,
        title=body.title,
        description=body.description,
        is_active=body.is_active,
    )
    return ApiEnvelope(data=TierBenefitPublic.model_validate(benefit))


@router.put("/{benefit_id}", response_model=ApiEnvelope)
def update_benefit(
    benefit_id: int,
    body: TierBenefitUpdateRequest,
    session: SessionDep,
    _: AdminDep,
) -> ApiEnvelope:
    """
    更新等级权益（管理接口）

    请求路径: PUT /api/v1/vip/tier-benefits/{benefit_id}
    """
    benefit = crud.tier_benefits.update(
        session=session,
        benefit_id=benefit_id,
        title=body.title,
        description=body.description,
        is_active=body.is_active,
    )
    return ApiEnvelope(data=TierBenefitPublic.model_validate(benefit))


@router.delete("/{benefit_id}", response_model=ApiEnvelope)
def delete_benefit(benefit_id: int, session: SessionDep, _: AdminDep) -> ApiEnvelope:
    """
    停用等级权益（软删除，记录保留）

    请求路径: DELETE /api/v1/vip/tier-benefits/{benefit_id}
    """
    benefit = crud.tier_benefits.update(session=session, benefit_id=benefit_id, is_active=False)
    return ApiEnvelope(data=TierBenefitPublic.model_validate(benefit))
