from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from sqlmodel import Session, SQLModel

from app import crud
from app.core.config import settings
from app.core.db import build_engine
from app.crud import memberships, points_log
from app.enums import VipTier
from app.services.points_service import PointsService

CALLS = 100


@pytest.fixture()
def file_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


def test_concurrent_consumptions_do_not_lose_updates(file_engine):
    with Session(file_engine) as session:
        user = crud.users.create(session=session, name="Grace", email="grace@example.com")
        user_id = user.id
        memberships.create_membership(session=session, user_id=user_id)
        crud.point_rules.create_rule(
            session=session,
            action_type=settings.CONSUMPTION_ACTION_TYPE,
            points_per_unit=Decimal("1"),
            unit="EUR",
            unit_size=Decimal("1"),
        )

    def award_one(_: int) -> int:
        with Session(file_engine) as session:
            return PointsService(session).process_consumption(user_id, 1).points_awarded

    with ThreadPoolExecutor(max_workers=8) as pool:
        awarded = list(pool.map(award_one, range(CALLS)))

    assert awarded == [1] * CALLS
    with Session(file_engine) as session:
        membership = memberships.get_membership(session=session, user_id=user_id)
        assert membership.points_balance == CALLS
        assert membership.lifetime_points == CALLS
        assert points_log.count_log_entries(session=session, user_id=user_id) == CALLS
        totals = points_log.ledger_totals(session=session, user_id=user_id)
        assert totals.balance == membership.points_balance


def test_concurrent_adjustments_converge_on_final_tier(file_engine):
    with Session(file_engine) as session:
        user = crud.users.create(session=session, name="Linus", email="linus@example.com")
        user_id = user.id
        memberships.create_membership(session=session, user_id=user_id)

    def add_ten(_: int) -> None:
        with Session(file_engine) as session:
            PointsService(session).adjust_points_manually(user_id, 10, "batch import")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(add_ten, range(60)))

    with Session(file_engine) as session:
        service = PointsService(session)
        membership = memberships.get_membership(session=session, user_id=user_id)
        assert membership.lifetime_points == 600
        assert membership.tier == VipTier.gold
        assert service.recompute_tier(user_id) == VipTier.gold
