"""CRUD 操作模块"""
from . import (
    consumptions,
    memberships,
    nfc_cards,
    point_rules,
    points_log,
    tier_benefits,
    users,
)
from .memberships import apply_balance_delta, get_membership
from .point_rules import PointRuleStore, RuleResult
from .points_log import append_log_entry

__all__ = [
    "consumptions",
    "memberships",
    "nfc_cards",
    "point_rules",
    "points_log",
    "tier_benefits",
    "users",
    "PointRuleStore",
    "RuleResult",
    "append_log_entry",
    "apply_balance_delta",
    "get_membership",
]
