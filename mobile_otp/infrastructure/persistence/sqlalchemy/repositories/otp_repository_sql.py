from datetime import datetime
from typing import Optional
import logging

from sqlalchemy import delete, update
from sqlmodel import Session, select

from .....db.models import OTPRecord
from .....application.ports.otp_repo import OTPRepository, OTPRecordDto, OTPPurpose

logger = logging.getLogger(__name__)


class SqlOTPRepository(OTPRepository):
    """OTP records on SQLModel.

    Mutations are single conditional UPDATE statements so that two requests
    racing on the same record cannot both win; the caller inspects the
    boolean result and reloads on a lost race.
    """

    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, rec: OTPRecord) -> OTPRecordDto:
        return OTPRecordDto(
            id=rec.id,
            user_id=rec.user_id,
            mobile=rec.mobile,
            secret_hash=rec.secret_hash,
            purpose=OTPPurpose(rec.purpose),
            created_at=rec.created_at,
            expires_at=rec.expires_at,
            attempts=rec.attempts,
            max_attempts=rec.max_attempts,
            verified_at=rec.verified_at,
            provider=rec.provider,
            provider_message_id=rec.provider_message_id,
            cost=rec.cost,
        )

    def create(self, record: OTPRecordDto) -> OTPRecordDto:
        rec = OTPRecord(
            id=record.id,
            user_id=record.user_id,
            mobile=record.mobile,
            secret_hash=record.secret_hash,
            purpose=record.purpose.value,
            created_at=record.created_at,
            expires_at=record.expires_at,
            attempts=record.attempts,
            max_attempts=record.max_attempts,
            verified_at=record.verified_at,
            provider=record.provider,
            provider_message_id=record.provider_message_id,
            cost=record.cost,
        )
        try:
            self.session.add(rec)
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.exception(f"Failed to persist OTP record {record.id} for purpose {record.purpose.value}")
            raise
        self.session.refresh(rec)
        return self._to_dto(rec)

    def get(self, otp_id: str) -> Optional[OTPRecordDto]:
        # Always read fresh state; another instance may have updated the row
        self.session.expire_all()
        rec = self.session.exec(select(OTPRecord).where(OTPRecord.id == otp_id)).first()
        return self._to_dto(rec) if rec else None

    def _conditional_update(self, stmt) -> bool:
        try:
            result = self.session.exec(stmt)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return result.rowcount == 1

    def record_failed_attempt(self, otp_id: str, expected_attempts: int, now: datetime) -> bool:
        stmt = (
            update(OTPRecord)
            .where(OTPRecord.id == otp_id)
            .where(OTPRecord.attempts == expected_attempts)
            .where(OTPRecord.attempts < OTPRecord.max_attempts)
            .where(OTPRecord.verified_at.is_(None))
            .where(OTPRecord.expires_at >= now)
            .values(attempts=OTPRecord.attempts + 1)
        )
        return self._conditional_update(stmt)

    def mark_verified(self, otp_id: str, expected_attempts: int, verified_at: datetime) -> bool:
        stmt = (
            update(OTPRecord)
            .where(OTPRecord.id == otp_id)
            .where(OTPRecord.attempts == expected_attempts)
            .where(OTPRecord.verified_at.is_(None))
            .where(OTPRecord.expires_at >= verified_at)
            .values(verified_at=verified_at)
        )
        return self._conditional_update(stmt)

    def delete_expired(self, now: datetime) -> int:
        result = self.session.exec(delete(OTPRecord).where(OTPRecord.expires_at < now))
        self.session.commit()
        return result.rowcount or 0
