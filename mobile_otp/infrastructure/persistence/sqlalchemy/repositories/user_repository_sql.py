import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import User
from .....application.ports.user_repo import UserRepository, UserDto
from .....utils import utcnow

logger = logging.getLogger(__name__)


class SqlUserRepository(UserRepository):
    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _to_dto(user: User) -> UserDto:
        return UserDto(
            id=user.id,
            phone=user.phone,
            is_verified=bool(user.is_verified),
            is_active=bool(user.is_active),
            created_at=user.created_at,
            name=user.name,
        )

    def get_by_phone(self, phone: str) -> Optional[UserDto]:
        user = self.session.exec(select(User).where(User.phone == phone)).first()
        return self._to_dto(user) if user else None

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        user = self.session.get(User, user_id)
        return self._to_dto(user) if user else None

    def create(self, phone: str, name: Optional[str] = None, is_verified: bool = False) -> UserDto:
        user = User(phone=phone, name=name, is_verified=is_verified)
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError:
            # phone is unique; a parallel registration won the insert
            self.session.rollback()
            existing = self.get_by_phone(phone)
            if existing is None:
                raise
            logger.info(f"User {existing.id} already registered for this number, reusing it")
            return existing
        self.session.refresh(user)
        return self._to_dto(user)

    def mark_verified(self, user_id: str) -> None:
        self.session.exec(
            update(User)
            .where(User.id == user_id)
            .where(User.is_verified == False)  # noqa: E712
            .values(is_verified=True, updated_at=utcnow())
        )
        self.session.commit()
