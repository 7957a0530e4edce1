from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Optional

from sqlalchemy import delete, inspect
from sqlmodel import Session

from ..core.config import get_settings
from ..models import TellerSessionModel


logger = logging.getLogger(__name__)

_sessions = TellerSessionModel.__table__


class SessionStore:
    """Server-side sessions keyed by an opaque token.

    A session is authenticated when it carries an account id. It also holds
    at most one pending flash message. Rows are only written once there is
    something to remember (a login or a flash message) and are dropped once
    they are older than the configured time-to-live.
    """

    def __init__(self, session: Session, ttl: Optional[timedelta] = None) -> None:
        self.session = session
        self.ttl = ttl or timedelta(minutes=get_settings().session_ttl_minutes)

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------
    @staticmethod
    def is_stored(record: TellerSessionModel) -> bool:
        return inspect(record).persistent

    @staticmethod
    def _expired(record: TellerSessionModel, cutoff: datetime) -> bool:
        created_at = record.created_at
        if created_at.tzinfo is None:
            # SQLite hands timestamps back without their zone
            created_at = created_at.replace(tzinfo=UTC)
        return created_at < cutoff

    def _purge_expired(self, cutoff: datetime) -> int:
        stmt = delete(_sessions).where(_sessions.c.created_at < cutoff)
        return self.session.connection().execute(stmt).rowcount

    def _save(self, record: TellerSessionModel) -> None:
        self.session.add(record)
        self.session.commit()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def open(self, token: Optional[str]) -> TellerSessionModel:
        """Return the live session for ``token`` or a fresh, unsaved one."""
        cutoff = datetime.now(UTC) - self.ttl
        record = self.session.get(TellerSessionModel, token) if token else None
        if record is not None and self._expired(record, cutoff):
            logger.info("session.expired", extra={"account_id": record.account_id})
            self.session.delete(record)
            self.session.flush()
            record = None

        purged = self._purge_expired(cutoff)
        if self.session.in_transaction():
            self.session.commit()
        if purged:
            logger.info("session.purged", extra={"count": purged})

        if record is None:
            record = TellerSessionModel(token=secrets.token_urlsafe(32))
        return record

    def current_account_id(self, record: TellerSessionModel) -> Optional[int]:
        return record.account_id

    def authenticate(self, record: TellerSessionModel, account_id: int) -> None:
        record.account_id = account_id
        self._save(record)
        logger.info("session.login", extra={"account_id": account_id})

    def forget_account(self, record: TellerSessionModel) -> None:
        record.account_id = None
        if self.is_stored(record):
            self._save(record)

    def push_flash(self, record: TellerSessionModel, message: str) -> None:
        record.flash = message
        self._save(record)

    def pop_flash(self, record: TellerSessionModel) -> Optional[str]:
        message = record.flash
        if message is not None:
            record.flash = None
            if self.is_stored(record):
                self._save(record)
        return message

    def clear(self, record: TellerSessionModel) -> None:
        account_id = record.account_id
        if self.is_stored(record):
            self.session.delete(record)
            self.session.commit()
        logger.info("session.logout", extra={"account_id": account_id})
