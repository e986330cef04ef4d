from __future__ import annotations

import pytest
import redis

from app import crud
from app.core.config import Settings, settings
from app.core.redis import tier_change_stream_key
from app.crud import memberships, nfc_cards, point_rules
from app.models import NFCCard
from app.services.events import publish_tier_change
from app.worker import nfc_sync_worker, tasks
from app.worker.scheduler import build_scheduler


class _BrokenRedis:
    def xadd(self, *args, **kwargs):  # type: ignore[no-untyped-def]
        raise redis.ConnectionError("redis down")


def _card(db, user_id: int, uid: str = "04A1B2C3") -> NFCCard:
    return nfc_cards.create(session=db, card_uid=uid, user_id=user_id, meta={"label": "main"})


def test_sync_tier_change_updates_card_metadata(db, user):
    card = _card(db, user.id)

    updated = nfc_sync_worker.sync_tier_change(
        db,
        {"user_id": str(user.id), "tier": "gold", "points_balance": "520", "lifetime_points": "610"},
    )

    assert updated == 1
    db.refresh(card)
    assert card.meta["label"] == "main"
    assert card.meta["vip_tier"] == "gold"
    assert card.meta["points_balance"] == 520
    assert card.meta["lifetime_points"] == 610
    assert "synced_at" in card.meta


def test_consume_once_acks_synced_messages(db, user, engine, redis_stub, monkeypatch):
    monkeypatch.setattr(nfc_sync_worker, "engine", engine)
    _card(db, user.id)
    fake = redis_stub
    publish_tier_change(fake, user_id=user.id, tier="black", points_balance=1800)
    fake.xadd(
        tier_change_stream_key(),
        {"user_id": str(user.id), "tier": "platinum", "points_balance": "1"},
    )

    nfc_sync_worker.ensure_group(fake, tier_change_stream_key())
    acked = nfc_sync_worker.consume_once(fake, "worker-1", block_ms=0)

    # the unknown tier stays pending
    assert acked == 1
    assert fake.acked == ["1-0"]
    (card,) = nfc_cards.list_for_user(session=db, user_id=user.id)
    db.refresh(card)
    assert card.meta["vip_tier"] == "black"


def test_publish_failure_is_logged_not_raised():
    assert publish_tier_change(_BrokenRedis(), user_id=1, tier="gold", points_balance=0) is None


def test_reconcile_all_memberships(db, user, engine, redis_stub, monkeypatch):
    monkeypatch.setattr(tasks, "engine", engine)
    memberships.create_membership(session=db, user_id=user.id)
    crud.points_log.append_log_entry(
        session=db, user_id=user.id, delta_points=70, reason="import", source="manual_adjustment"
    )
    fake = redis_stub

    report = tasks.reconcile_all_memberships(fake)

    assert report.checked == 1
    assert report.corrected == [user.id]
    assert report.failed == []
    assert fake.kv == {}
    db.expire_all()
    assert memberships.get_membership(session=db, user_id=user.id).points_balance == 70


def test_reconcile_skips_when_locked(engine, redis_stub, monkeypatch):
    monkeypatch.setattr(tasks, "engine", engine)
    fake = redis_stub
    fake.kv[tasks.RECONCILE_LOCK_KEY] = "someone-else"

    report = tasks.reconcile_all_memberships(fake)

    assert report.skipped is True
    assert fake.kv[tasks.RECONCILE_LOCK_KEY] == "someone-else"


def test_scheduler_registers_nightly_reconcile():
    scheduler = build_scheduler()
    job = scheduler.get_job("nightly_reconcile")
    assert job is not None
    assert f"hour='{settings.RECONCILE_CRON_HOUR}'" in str(job.trigger)


def test_prestart_and_seed_scripts(db, engine, redis_stub, monkeypatch):
    from app import backend_pre_start, initial_data

    monkeypatch.setattr(backend_pre_start, "engine", engine)
    monkeypatch.setattr(backend_pre_start, "get_redis", lambda: redis_stub)
    monkeypatch.setattr(initial_data, "engine", engine)

    backend_pre_start.wait_for_database(engine)
    backend_pre_start.wait_for_redis(redis_stub)
    backend_pre_start.main([])
    backend_pre_start.main(["--skip-redis"])

    assert initial_data.init() == 2
    initial_data.main()
    rule = point_rules.get_rule(session=db, action_type=settings.CONSUMPTION_ACTION_TYPE)
    assert rule.unit == settings.DEFAULT_CURRENCY


def test_settings_validation_paths():
    from app.core.config import parse_cors

    assert parse_cors("http://a.test, http://b.test") == ["http://a.test", "http://b.test"]
    with pytest.raises(ValueError):
        parse_cors(123)

    # Non-local env should reject default secrets.
    with pytest.raises(ValueError):
        Settings(ENVIRONMENT="production", ADMIN_API_TOKEN="changethis", DATABASE_URL="sqlite://")

    with pytest.raises(ValueError):
        Settings(VIP_TIER_THRESHOLDS={"silver": 10, "gold": 500})

    cfg = Settings(DATABASE_URL="sqlite:///./vip.db", ADMIN_API_TOKEN="s3cret")
    assert cfg.SQLALCHEMY_DATABASE_URI == "sqlite:///./vip.db"
