import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import StatementError
from sqlmodel import Session

from mobile_otp.application.ports.otp_repo import OTPPurpose, OTPRecordDto
from mobile_otp.database import build_engine, create_db_and_tables
from mobile_otp.infrastructure.persistence.sqlalchemy.repositories.otp_repository_sql import SqlOTPRepository

NOW = datetime(2026, 3, 1, 8, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    return engine


def make_record(**overrides):
    values = dict(
        id=str(uuid.uuid4()),
        user_id=None,
        mobile="+911234567890",
        secret_hash="a" * 64,
        purpose=OTPPurpose.LOGIN,
        created_at=NOW,
        expires_at=NOW + timedelta(minutes=10),
        attempts=0,
        max_attempts=3,
        provider="mock",
        provider_message_id="mock_1",
        cost=0.01,
    )
    values.update(overrides)
    return OTPRecordDto(**values)


def test_create_and_get_round_trip(engine):
    with Session(engine) as session:
        repo = SqlOTPRepository(session)
        created = repo.create(make_record(purpose=OTPPurpose.MOBILE_VERIFICATION))
        loaded = repo.get(created.id)

    assert loaded.id == created.id
    assert loaded.purpose == OTPPurpose.MOBILE_VERIFICATION
    assert loaded.expires_at == NOW + timedelta(minutes=10)
    assert loaded.attempts == 0
    assert loaded.verified_at is None
    assert loaded.cost == 0.01


def test_get_missing_returns_none(engine):
    with Session(engine) as session:
        assert SqlOTPRepository(session).get("nope") is None


def test_failed_attempt_is_compare_and_set(engine):
    with Session(engine) as session:
        repo = SqlOTPRepository(session)
        rec = repo.create(make_record())
        assert repo.record_failed_attempt(rec.id, 0, NOW) is True
        # stale read from a competing request
        assert repo.record_failed_attempt(rec.id, 0, NOW) is False
        assert repo.get(rec.id).attempts == 1


def test_failed_attempts_stop_at_max(engine):
    with Session(engine) as session:
        repo = SqlOTPRepository(session)
        rec = repo.create(make_record(max_attempts=2))
        assert repo.record_failed_attempt(rec.id, 0, NOW) is True
        assert repo.record_failed_attempt(rec.id, 1, NOW) is True
        assert repo.record_failed_attempt(rec.id, 2, NOW) is False
        assert repo.get(rec.id).attempts == 2


def test_mark_verified_only_once(engine):
    with Session(engine) as session:
        repo = SqlOTPRepository(session)
        rec = repo.create(make_record())
        assert repo.mark_verified(rec.id, 0, NOW) is True
        assert repo.mark_verified(rec.id, 0, NOW + timedelta(seconds=1)) is False
        assert repo.record_failed_attempt(rec.id, 0, NOW) is False
        assert repo.get(rec.id).verified_at == NOW


def test_updates_are_visible_across_sessions(engine):
    with Session(engine) as first, Session(engine) as second:
        a = SqlOTPRepository(first)
        b = SqlOTPRepository(second)
        rec = a.create(make_record())
        assert a.get(rec.id).verified_at is None

        assert b.mark_verified(rec.id, 0, NOW) is True
        assert a.get(rec.id).verified_at == NOW
        assert a.mark_verified(rec.id, 0, NOW) is False


def test_mark_verified_rejects_stale_attempt_count(engine):
    with Session(engine) as session:
        repo = SqlOTPRepository(session)
        rec = repo.create(make_record())
        repo.record_failed_attempt(rec.id, 0, NOW)
        assert repo.mark_verified(rec.id, 0, NOW) is False


def test_delete_expired(engine):
    with Session(engine) as session:
        repo = SqlOTPRepository(session)
        old = repo.create(make_record(expires_at=NOW - timedelta(seconds=1)))
        live = repo.create(make_record(expires_at=NOW + timedelta(minutes=5)))
        assert repo.delete_expired(NOW) == 1
        assert repo.get(old.id) is None
        assert repo.get(live.id) is not None


def test_timestamps_round_trip_as_aware_utc(engine):
    ist = timezone(timedelta(hours=5, minutes=30))
    with Session(engine) as session:
        repo = SqlOTPRepository(session)
        rec = repo.create(make_record(expires_at=datetime(2026, 3, 1, 14, 10, 0, tzinfo=ist)))
        loaded = repo.get(rec.id)

    assert loaded.created_at == NOW
    assert loaded.created_at.tzinfo == timezone.utc
    assert loaded.expires_at == NOW + timedelta(minutes=10)
    assert loaded.expires_at.tzinfo == timezone.utc


def test_naive_timestamps_are_refused(engine):
    with Session(engine) as session:
        repo = SqlOTPRepository(session)
        with pytest.raises(StatementError):
            repo.create(make_record(expires_at=datetime(2026, 3, 1, 8, 40, 0)))


def test_writes_after_expiry_are_refused(engine):
    late = NOW + timedelta(minutes=30)
    with Session(engine) as session:
        repo = SqlOTPRepository(session)
        failing = repo.create(make_record())
        verifying = repo.create(make_record())

        assert repo.record_failed_attempt(failing.id, 0, late) is False
        assert repo.mark_verified(verifying.id, 0, late) is False
        assert repo.get(failing.id).attempts == 0
        assert repo.get(verifying.id).verified_at is None

        # still writable up to and including the expiry instant
        expiry = NOW + timedelta(minutes=10)
        assert repo.record_failed_attempt(failing.id, 0, expiry) is True
        assert repo.mark_verified(verifying.id, 0, expiry) is True
