from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..core.errors import FailureReason, Outcome
from ..core.money import to_cents
from ..models import AccountModel, MovementKind, MovementModel
from .repository import AccountStore, MovementStore


logger = logging.getLogger(__name__)


class AccountService:
    """Deposit, withdraw and transfer on top of the account store.

    Amounts are expected to be validated (positive) by the caller. Each
    operation is a single database transaction: the balance changes and the
    movements recording them are committed together or not at all.
    """

    def __init__(
        self,
        session: Session,
        accounts: Optional[AccountStore] = None,
        movements: Optional[MovementStore] = None,
    ) -> None:
        self.session = session
        self.accounts = accounts or AccountStore(session)
        self.movements = movements or MovementStore(session)

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------
    def _abort(self, outcome: Outcome) -> Outcome:
        self.session.rollback()
        return outcome

    def _log_movement(self, account_id: int, cents: int, kind: MovementKind) -> Outcome:
        return self.movements.add(
            MovementModel(account_id=account_id, amount_cents=cents, kind=kind)
        )

    def _commit(self, *accounts: AccountModel) -> Outcome:
        account_ids = [account.id for account in accounts]
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(
                "store.account.commit_failed",
                extra={"account_ids": account_ids},
            )
            return Outcome.failure(FailureReason.STORE_FAILURE, str(exc))

        for account in accounts:
            if account in self.session:
                self.session.refresh(account)
        return Outcome.success(accounts[0] if len(accounts) == 1 else accounts)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def deposit(self, account: AccountModel, amount: Decimal) -> Outcome:
        account_id, cents = account.id, to_cents(amount)
        credited = self.accounts.credit(account_id, cents)
        if not credited:
            return self._abort(credited)

        logged = self._log_movement(account_id, cents, "Deposit")
        if not logged:
            return self._abort(logged)

        outcome = self._commit(account)
        if outcome:
            logger.info(
                "account.deposit",
                extra={"account_id": account_id, "amount": str(amount), "balance": str(account.balance)},
            )
        return outcome

    def withdraw(self, account: AccountModel, amount: Decimal) -> Outcome:
        account_id, cents = account.id, to_cents(amount)
        debited = self.accounts.debit(account_id, cents)
        if not debited:
            logger.info(
                "account.withdraw.rejected",
                extra={"account_id": account_id, "amount": str(amount), "reason": debited.reason.value},
            )
            return self._abort(debited)

        logged = self._log_movement(account_id, -cents, "Withdrawal")
        if not logged:
            return self._abort(logged)

        outcome = self._commit(account)
        if outcome:
            logger.info(
                "account.withdraw",
                extra={"account_id": account_id, "amount": str(amount), "balance": str(account.balance)},
            )
        return outcome

    def transfer(
        self,
        source: AccountModel,
        destination: AccountModel,
        amount: Decimal,
    ) -> Outcome:
        source_id, dest_id, cents = source.id, destination.id, to_cents(amount)
        if source_id == dest_id:
            return Outcome.failure(FailureReason.SAME_ACCOUNT, "Cannot transfer to the same account")

        debited = self.accounts.debit(source_id, cents)
        if not debited:
            logger.info(
                "account.transfer.rejected",
                extra={"source_account_id": source_id, "amount": str(amount), "reason": debited.reason.value},
            )
            return self._abort(debited)

        credited = self.accounts.credit(dest_id, cents)
        if not credited:
            # the debit above is still uncommitted and goes away with it
            logger.warning(
                "account.transfer.rolled_back",
                extra={
                    "source_account_id": source_id,
                    "dest_account_id": dest_id,
                    "reason": credited.reason.value,
                },
            )
            return self._abort(credited)

        for account_id, signed in ((source_id, -cents), (dest_id, cents)):
            logged = self._log_movement(account_id, signed, "Transfer")
            if not logged:
                return self._abort(logged)

        outcome = self._commit(source, destination)
        if outcome:
            logger.info(
                "account.transfer",
                extra={
                    "source_account_id": source_id,
                    "dest_account_id": dest_id,
                    "amount": str(amount),
                },
            )
        return outcome
