from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker

from reservations.database import build_engine
from reservations.models import Base
from reservations.schemas.windows import WindowCreate
from reservations.services.booking_coordinator import BookingCoordinator, BookingRequest
from reservations.services.slots import BookingConfig, MemoryCapacityLedger

TODAY = date(2025, 1, 1)


@pytest.fixture
def engine(tmp_path):
    # file-backed so worker threads share one database
    engine = build_engine(f"sqlite:///{tmp_path / 'reservations.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def config():
    return BookingConfig(lock_timeout_seconds=10.0)


@pytest.fixture
def ledger(config):
    return MemoryCapacityLedger(config)


@pytest.fixture
def coordinator(session_factory, ledger, config):
    return BookingCoordinator(session_factory, ledger, config, clock=lambda: TODAY)


@pytest.fixture
def make_window(coordinator):
    def _make(**overrides):
        data = {
            "kind": "previsit",
            "name": "Pre-visit",
            "date_begin": date(2025, 1, 10),
            "date_end": date(2025, 1, 10),
            "time_first": "10:00",
            "time_last": "12:00",
            "time_unit": 30,
            "max_limit": 2,
        }
        data.update(overrides)
        return coordinator.create_window(WindowCreate(**data))

    return _make


@pytest.fixture
def make_request():
    def _make(window_id, subject_id=1, slot_date="2025-01-10", slot_time="10:00", **extra):
        return BookingRequest(
            window_id=window_id,
            slot_date=slot_date,
            slot_time=slot_time,
            subject_id=subject_id,
            contact_name=f"Resident {subject_id}",
            contact_phone="010-0000-0000",
            **extra,
        )

    return _make
