import pytest
from sqlmodel import Session, select

from mobile_otp.database import build_engine, create_db_and_tables
from mobile_otp.db.models import User
from mobile_otp.infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository

MOBILE = "+919876543210"


@pytest.fixture
def session():
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    with Session(engine) as session:
        yield session


def test_create_and_lookup_by_phone(session):
    repo = SqlUserRepository(session)
    created = repo.create(MOBILE, is_verified=True)

    found = repo.get_by_phone(MOBILE)
    assert found == created
    assert found.is_verified is True
    assert found.is_active is True
    assert repo.get_by_phone("+911111111111") is None


def test_duplicate_registration_returns_existing_user(session):
    repo = SqlUserRepository(session)
    first = repo.create(MOBILE)
    second = repo.create(MOBILE, is_verified=True)

    assert second.id == first.id
    assert len(session.exec(select(User)).all()) == 1


def test_mark_verified(session):
    repo = SqlUserRepository(session)
    user = repo.create(MOBILE)
    assert user.is_verified is False

    repo.mark_verified(user.id)
    repo.mark_verified(user.id)
    session.expire_all()
    assert repo.get_by_phone(MOBILE).is_verified is True
