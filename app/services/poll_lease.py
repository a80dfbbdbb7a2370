"""Database-backed lease so overlapping poll runs don't process the same students.

A run takes the lease by compare-and-set on ``expires_at``; the very first run
inserts the row and a primary key collision means somebody else won. A crashed
holder simply lets the lease expire.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.poll_lease import PollLease

logger = logging.getLogger(__name__)


def acquire_lease(db: Session, name: str, ttl_seconds: int) -> Optional[str]:
    """Return a holder token when the lease was taken, None when it is busy."""
    now = datetime.now(timezone.utc)
    holder = uuid.uuid4().hex
    expires_at = now + timedelta(seconds=ttl_seconds)

    try:
        result = db.execute(
            update(PollLease)
            .where(PollLease.name == name, PollLease.expires_at <= now)
            .values(holder=holder, acquired_at=now, expires_at=expires_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            if db.query(PollLease.name).filter(PollLease.name == name).first() is not None:
                db.rollback()
                return None
            db.add(PollLease(name=name, holder=holder, acquired_at=now, expires_at=expires_at))
        db.commit()
    except IntegrityError:
        db.rollback()
        return None

    logger.debug("lease %s acquired by %s", name, holder)
    return holder


def release_lease(db: Session, name: str, holder: str) -> None:
    try:
        db.execute(
            delete(PollLease)
            .where(PollLease.name == name, PollLease.holder == holder)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError:
        # expiry releases it anyway
        db.rollback()
        logger.warning("could not release lease %s", name, exc_info=True)
