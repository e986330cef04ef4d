"""
积分规则路由模块

管理积分规则（action_type -> 每单位积分），包括：
- 查询规则列表
- 创建规则（action_type 已存在时返回 409）
- 更新规则

阈值规则 tier_threshold_<tier> 写入后立即清除等级阈值缓存。
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app.api.deps import AdminDep, SessionDep
from app.api.errors import ConflictError, RuleNotFoundError
from app.api.schemas import (
    ApiEnvelope,
    PointRuleCreateRequest,
    PointRulePublic,
    PointRuleUpdateRequest,
)
from app.crud import point_rules
from app.enums import RuleStoreStatus
from app.services.tiers import is_threshold_rule, ladder_cache

router = APIRouter(prefix="/vip/point-rules", tags=["point-rules"])


@router.get("", response_model=ApiEnvelope)
def list_rules(
    session: SessionDep,
    active_only: bool = Query(default=False),
) -> ApiEnvelope:
    """
    查询积分规则列表

    请求路径: GET /api/v1/vip/point-rules?active_only=false
    """
    rules = point_rules.list_rules(session=session, active_only=active_only)
    return ApiEnvelope(data=[PointRulePublic.model_validate(r) for r in rules])


@router.post("", response_model=ApiEnvelope)
def create_rule(body: PointRuleCreateRequest, session: SessionDep, _: AdminDep) -> ApiEnvelope:
    """
    创建积分规则（管理接口）

    请求路径: POST /api/v1/vip/point-rules

    Raises:
        ConflictError: action_type 已存在
    """
    result = point_rules.create_rule(
        session=session,
        action_type=body.action_type,
        points_per_unit=body.points_per_unit,
        unit=body.unit,
        unit_size=body.unit_size,
        is_active=body.is_active,
    )
    if result.status == RuleStoreStatus.conflict:
        raise ConflictError(f"Point rule already exists: {body.action_type}")
    if is_threshold_rule(body.action_type):
        ladder_cache.clear()
    return ApiEnvelope(data=PointRulePublic.model_validate(result.rule))


@router.put("/{action_type}", response_model=ApiEnvelope)
def update_rule(
    action_type: str,
    body: PointRuleUpdateRequest,
    session: SessionDep,
    _: AdminDep,
) -> ApiEnvelope:
    """
    更新积分规则（管理接口），只更新请求中非空的字段

    请求路径: PUT /api/v1/vip/point-rules/{action_type}
    """
    result = point_rules.update_rule(
        session=session,
        action_type=action_type,
        fields=body.model_dump(exclude_none=True),
    )
    if result.status == RuleStoreStatus.not_found:
        raise RuleNotFoundError(action_type)
    if is_threshold_rule(action_type):
        ladder_cache.clear()
    return ApiEnvelope(data=PointRulePublic.model_validate(result.rule))
