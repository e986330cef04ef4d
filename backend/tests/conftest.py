from __future__ import annotations

from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, delete

from app import crud
from app.api.deps import get_db
from app.core.config import settings
from app.main import app
from app.models import (
    NFCCard,
    User,
    VIPConsumption,
    VIPMembership,
    VIPPointRule,
    VIPPointsLog,
    VIPTierBenefit,
)
from app.services.tiers import ladder_cache


class FakeRedis:
    """In-memory stand-in for the bits of redis.Redis the app uses."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, dict[str, str]]] = []
        self.acked: list[str] = []
        self.groups: set[tuple[str, str]] = set()
        self.kv: dict[str, str] = {}
        self._delivered = 0

    def xadd(self, name: str, fields: dict[str, str], maxlen=None, approximate=True) -> str:  # type: ignore[no-untyped-def]
        self.messages.append((name, dict(fields)))
        return f"{len(self.messages)}-0"

    def xgroup_create(self, name: str, groupname: str, id: str = "$", mkstream: bool = False) -> bool:
        self.groups.add((name, groupname))
        return True

    def xreadgroup(self, groupname, consumername, streams, count=None, block=None):  # type: ignore[no-untyped-def]
        (stream_key,) = streams.keys()
        pending = [
            (f"{idx + 1}-0", fields)
            for idx, (name, fields) in enumerate(self.messages)
            if name == stream_key and idx >= self._delivered
        ]
        self._delivered = len(self.messages)
        return [(stream_key, pending)] if pending else []

    def xack(self, name: str, groupname: str, *ids: str) -> int:
        self.acked.extend(ids)
        return len(ids)

    def set(self, name: str, value: str, ex=None, nx: bool = False):  # type: ignore[no-untyped-def]
        if nx and name in self.kv:
            return None
        self.kv[name] = value
        return True

    def eval(self, script: str, numkeys: int, key: str, value: str) -> int:
        if self.kv.get(key) == value:
            del self.kv[key]
            return 1
        return 0

    def ping(self) -> bool:
        return True


@pytest.fixture(autouse=True)
def reset_ladder_cache() -> Generator[None, None, None]:
    ladder_cache.clear()
    yield
    ladder_cache.clear()


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
        # Clean tables after each test (children first).
        session.rollback()
        session.exec(delete(VIPPointsLog))
        session.exec(delete(VIPConsumption))
        session.exec(delete(VIPMembership))
        session.exec(delete(NFCCard))
        session.exec(delete(VIPTierBenefit))
        session.exec(delete(VIPPointRule))
        session.exec(delete(User))
        session.commit()


@pytest.fixture(scope="function")
def client(engine, db) -> Generator[TestClient, None, None]:
    def _override_get_db() -> Generator[Session, None, None]:
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def redis_stub() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def fake_redis(redis_stub, monkeypatch) -> FakeRedis:
    fake = redis_stub
    for module in ("consumptions", "points", "memberships"):
        monkeypatch.setattr(f"app.api.routes.{module}.get_redis", lambda: fake)
    return fake


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {settings.ADMIN_API_TOKEN}"}


@pytest.fixture()
def user(db) -> User:
    return crud.users.create(session=db, name="Ada", email="ada@example.com")


@pytest.fixture()
def consumption_rule(db) -> VIPPointRule:
    # 1 point per 10 EUR
    result = crud.point_rules.create_rule(
        session=db,
        action_type=settings.CONSUMPTION_ACTION_TYPE,
        points_per_unit=Decimal("1"),
        unit="EUR",
        unit_size=Decimal("10"),
    )
    return result.rule
