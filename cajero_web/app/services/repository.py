from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..core.errors import FailureReason, Outcome
from ..models import AccountModel, MovementModel


logger = logging.getLogger(__name__)

_accounts = AccountModel.__table__


class AccountStore:
    """Primitive access to the account table.

    Writes are flushed but never committed here; the caller owns the
    transaction. Store errors are rolled back, logged and reported as a
    failed ``Outcome``. Balance updates work in integer cents.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_id(self, account_id: int) -> Optional[AccountModel]:
        return self.session.get(AccountModel, account_id)

    def exists(self, account_id: int) -> bool:
        stmt = select(AccountModel.id).where(AccountModel.id == account_id)
        return self.session.exec(stmt).first() is not None

    def save(self, account: AccountModel) -> Outcome:
        try:
            merged = self.session.merge(account)
            self.session.flush()
        except SQLAlchemyError as exc:
            return self._failed("store.account.save_failed", account.id, exc)
        return Outcome.success(merged)

    # Balance updates ----------------------------------------------------
    def debit(self, account_id: int, cents: int) -> Outcome:
        """Take ``cents`` out of the balance only if it stays non-negative."""
        stmt = (
            update(_accounts)
            .where(_accounts.c.id == account_id)
            .where(_accounts.c.balance_cents >= cents)
            .values(balance_cents=_accounts.c.balance_cents - cents)
        )
        try:
            result = self.session.connection().execute(stmt)
        except SQLAlchemyError as exc:
            return self._failed("store.account.debit_failed", account_id, exc)

        if result.rowcount == 0:
            if not self.exists(account_id):
                return Outcome.failure(
                    FailureReason.ACCOUNT_NOT_FOUND, f"Account {account_id} not found"
                )
            return Outcome.failure(
                FailureReason.INSUFFICIENT_FUNDS, f"Insufficient funds in account {account_id}"
            )
        return Outcome.success()

    def credit(self, account_id: int, cents: int) -> Outcome:
        stmt = (
            update(_accounts)
            .where(_accounts.c.id == account_id)
            .values(balance_cents=_accounts.c.balance_cents + cents)
        )
        try:
            result = self.session.connection().execute(stmt)
        except SQLAlchemyError as exc:
            return self._failed("store.account.credit_failed", account_id, exc)

        if result.rowcount == 0:
            return Outcome.failure(
                FailureReason.ACCOUNT_NOT_FOUND, f"Account {account_id} not found"
            )
        return Outcome.success()

    def _failed(self, event: str, account_id: int, exc: SQLAlchemyError) -> Outcome:
        self.session.rollback()
        logger.exception(event, extra={"account_id": account_id})
        return Outcome.failure(FailureReason.STORE_FAILURE, str(exc))


class MovementStore:
    """Append-only log of balance movements."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, movement: MovementModel) -> Outcome:
        """Stage a movement in the caller's transaction (flush, no commit)."""
        account_id, kind = movement.account_id, movement.kind
        try:
            self.session.add(movement)
            self.session.flush()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(
                "store.movement.insert_failed",
                extra={"account_id": account_id, "kind": kind},
            )
            return Outcome.failure(FailureReason.STORE_FAILURE, str(exc))
        return Outcome.success(movement)

    def insert(self, movement: MovementModel) -> Outcome:
        account_id = movement.account_id
        staged = self.add(movement)
        if not staged:
            return staged
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("store.movement.commit_failed", extra={"account_id": account_id})
            return Outcome.failure(FailureReason.STORE_FAILURE, str(exc))
        self.session.refresh(movement)
        return Outcome.success(movement)

    def list_by_account(self, account_id: int) -> list[MovementModel]:
        stmt = (
            select(MovementModel)
            .where(MovementModel.account_id == account_id)
            .order_by(MovementModel.ts.asc(), MovementModel.id.asc())
        )
        return list(self.session.exec(stmt))
