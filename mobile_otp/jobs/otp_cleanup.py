"""Scheduled sweep: delete expired OTP records and stale rate-limit rows.

Run from cron or a platform scheduler::

    mobile-otp-cleanup
"""
import logging
import sys

from dotenv import load_dotenv
from sqlmodel import Session

load_dotenv()

from ..application.services.otp_service import purge_expired
from ..config import settings
from ..database import engine, create_db_and_tables
from ..infrastructure.persistence.sqlalchemy.repositories.otp_repository_sql import SqlOTPRepository
from ..infrastructure.rate_limit.factory import build_rate_limiter
from ..utils import utcnow

logger = logging.getLogger(__name__)


def run_cleanup(session: Session) -> int:
    return purge_expired(SqlOTPRepository(session), build_rate_limiter(settings, session), utcnow())


def main() -> int:
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO), format=settings.LOG_FORMAT)
    try:
        create_db_and_tables()
        with Session(engine) as session:
            removed = run_cleanup(session)
    except Exception:
        logger.exception("OTP cleanup failed")
        return 1
    logger.info(f"Removed {removed} expired OTP records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
