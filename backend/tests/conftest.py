from datetime import date
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from garden_booking.database import create_db_engine, get_db
from garden_booking.models.generated import Base, ScheduleRules
from garden_booking.services.booking_ledger import CustomerInfo
from garden_booking.services.schedule import BookingConfig, build_rules, materialize
from garden_booking.services.schedule.rules import RULES_ROW_ID

# Tuesday
TODAY = date(2025, 7, 1)


@pytest.fixture
def engine(tmp_path):
    # file-backed so that threads in the concurrency tests share one database
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}", lock_timeout=10.0)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def config():
    return BookingConfig(
        horizon_min_days=30,
        horizon_target_days=40,
        horizon_batch_days=7,
        lock_timeout_seconds=10.0,
    )


@pytest.fixture
def rules():
    return build_rules(
        operating_weekdays=["wednesday", "friday"],
        season_start=(5, 1),
        season_end=(9, 30),
        slot_labels=["10:00 AM", "2:00 PM"],
        max_bookings_per_slot=4,
        max_units_per_slot=6,
    )


def store_rules(db, rules):
    row = ScheduleRules(
        id=RULES_ROW_ID,
        operating_weekdays=sorted(rules.operating_weekdays),
        season_start_month=rules.season_start[0],
        season_start_day=rules.season_start[1],
        season_end_month=rules.season_end[0],
        season_end_day=rules.season_end[1],
        slot_labels=list(rules.slot_labels),
        max_bookings_per_slot=rules.max_bookings_per_slot,
        max_units_per_slot=rules.max_units_per_slot,
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def schedule(db, rules):
    """Rules stored and two weeks materialized from TODAY."""
    store_rules(db, rules)
    result = materialize(db, 14, rules, frozenset(), TODAY)
    db.commit()
    return result


@pytest.fixture
def customer():
    return CustomerInfo(full_name="Ada Gardner", email="ada@example.com", phone="780-555-0101")


@pytest.fixture
def fake_redis():
    redis = MagicMock()
    redis.get.return_value = None
    return redis


@pytest.fixture
def client(session_factory, fake_redis, monkeypatch):
    from garden_booking import main
    from garden_booking.routers import (
        admin_bookings,
        admin_holidays,
        admin_rules,
        admin_schedule,
        availability,
        bookings,
    )
    from garden_booking.services import events

    routers = (admin_bookings, admin_holidays, admin_rules, admin_schedule, availability, bookings)
    for module in routers:
        monkeypatch.setattr(module, "redis_client", fake_redis)
        monkeypatch.setattr(module, "business_today", lambda: TODAY)
    monkeypatch.setattr(events, "redis_client", fake_redis)
    monkeypatch.setattr(main, "redis_client", fake_redis)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()
