from __future__ import annotations

from decimal import Decimal

import pytest

from app.enums import VipTier
from app.models import VIPPointRule
from app.services.tiers import (
    LadderCache,
    TierLadder,
    TierThreshold,
    compute_tier,
    default_ladder,
    ladder_from_rules,
)

BASE = {"silver": 0, "gold": 500, "black": 1750}
LADDER = TierLadder.from_mapping(BASE)


@pytest.mark.parametrize(
    ("lifetime", "expected"),
    [
        (0, VipTier.silver),
        (499, VipTier.silver),
        (500, VipTier.gold),
        (1749, VipTier.gold),
        (1750, VipTier.black),
        (10**9, VipTier.black),
    ],
)
def test_compute_tier_boundaries(lifetime, expected):
    assert LADDER.compute_tier(lifetime) == expected


def test_compute_tier_is_monotonic():
    points = list(range(0, 2500, 7))
    tiers = [LADDER.compute_tier(p) for p in points]
    for lower, higher in zip(tiers, tiers[1:]):
        assert lower.rank <= higher.rank


def test_compute_tier_is_idempotent():
    assert LADDER.compute_tier(777) == LADDER.compute_tier(777) == VipTier.gold


def test_thresholds_are_injectable():
    thresholds = [TierThreshold(0, VipTier.silver), TierThreshold(10, VipTier.black)]
    assert compute_tier(9, thresholds) == VipTier.silver
    assert compute_tier(10, thresholds) == VipTier.black


def test_default_ladder_uses_settings():
    assert compute_tier(600) == default_ladder().compute_tier(600) == VipTier.gold


def test_ladder_rejects_invalid_thresholds():
    with pytest.raises(ValueError):
        TierLadder([])
    with pytest.raises(ValueError):
        TierLadder.from_mapping({"silver": 5, "gold": 100})
    with pytest.raises(ValueError):
        TierLadder.from_mapping({"silver": 0, "gold": 100, "black": 100})
    with pytest.raises(ValueError):
        TierLadder.from_mapping({"gold": 0, "silver": 100})


def test_compute_tier_rejects_negative_points():
    with pytest.raises(ValueError):
        LADDER.compute_tier(-1)


def test_next_tier_helpers():
    assert LADDER.next_tier(VipTier.silver) == VipTier.gold
    assert LADDER.next_tier(VipTier.black) is None
    assert LADDER.points_to_next_tier(120) == 380
    assert LADDER.points_to_next_tier(1750) is None
    assert LADDER.lowest_tier == VipTier.silver


class _Rules:
    def __init__(self, **thresholds: str) -> None:
        self.calls = 0
        self.rules = {
            f"tier_threshold_{tier}": VIPPointRule(
                action_type=f"tier_threshold_{tier}",
                points_per_unit=Decimal(value),
                unit="points",
            )
            for tier, value in thresholds.items()
        }

    def get_rule(self, action_type: str) -> VIPPointRule | None:
        self.calls += 1
        return self.rules.get(action_type)


def test_ladder_from_rules_overrides_thresholds():
    ladder = ladder_from_rules(_Rules(gold="299.5", black="1000"), base=BASE)
    assert [t.min_points for t in ladder.thresholds] == [0, 300, 1000]


def test_ladder_from_rules_ignores_lowest_tier_rule():
    ladder = ladder_from_rules(_Rules(silver="50"), base=BASE)
    assert ladder.compute_tier(0) == VipTier.silver


def test_ladder_from_rules_falls_back_on_invalid_combination():
    ladder = ladder_from_rules(_Rules(gold="2000"), base=BASE)
    assert [t.min_points for t in ladder.thresholds] == [0, 500, 1750]


def test_ladder_cache_reuses_until_cleared():
    rules = _Rules(gold="100")
    cache = LadderCache(ttl_seconds=60)

    first = cache.get(rules)
    calls = rules.calls
    assert cache.get(rules) is first
    assert rules.calls == calls

    cache.clear()
    assert cache.get(rules) is not first
    assert rules.calls == calls * 2
