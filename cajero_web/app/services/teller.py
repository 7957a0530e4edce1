from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..core.errors import AuthenticationRequiredError, FailureReason, Outcome
from ..models import (
    AccountModel,
    AccountView,
    AmountForm,
    LoginForm,
    MovementView,
    TellerSessionModel,
    TransferForm,
)
from .accounts import AccountService
from .repository import AccountStore, MovementStore
from .sessions import SessionStore


logger = logging.getLogger(__name__)

FormT = TypeVar("FormT", bound=BaseModel)

LOGIN_PATH = "/login"
DEPOSIT_PATH = "/ingresar"
WITHDRAW_PATH = "/extraer"
TRANSFER_PATH = "/transferencia"

MSG_BAD_ACCOUNT = "CUENTA INCORRECTA"
MSG_BAD_AMOUNT = "incorrect operation: incorrect amount"
MSG_BAD_DESTINATION = "incorrect operation: incorrect destination account"
MSG_INSUFFICIENT = "insufficient balance"
MSG_FAILED = "operation could not be completed"
MSG_DEPOSIT_OK = "deposit completed successfully"
MSG_WITHDRAW_OK = "withdrawal completed successfully"
MSG_TRANSFER_OK = "transfer completed successfully"


@dataclass
class ViewResult:
    """What the web layer should do next: render a view or redirect."""

    view: Optional[str] = None
    redirect: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)
    flash: Optional[str] = None
    end_session: bool = False


class TellerController:
    def __init__(
        self,
        sessions: SessionStore,
        accounts: AccountStore,
        service: AccountService,
        movements: MovementStore,
    ) -> None:
        self.sessions = sessions
        self.accounts = accounts
        self.service = service
        self.movements = movements

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------
    def _current_account(self, teller_session: TellerSessionModel) -> Optional[AccountModel]:
        account_id = self.sessions.current_account_id(teller_session)
        if account_id is None:
            return None

        account = self.accounts.find_by_id(account_id)
        if account is None:
            logger.warning("session.account_missing", extra={"account_id": account_id})
            self.sessions.forget_account(teller_session)
        return account

    def _require_account(self, teller_session: TellerSessionModel) -> AccountModel:
        account = self._current_account(teller_session)
        if account is None:
            raise AuthenticationRequiredError("An authenticated account is required")
        return account

    def _page(self, teller_session: TellerSessionModel, view: str, **context: Any) -> ViewResult:
        return ViewResult(view=view, context=context, flash=self.sessions.pop_flash(teller_session))

    def _redirect(self, teller_session: TellerSessionModel, path: str, message: str) -> ViewResult:
        self.sessions.push_flash(teller_session, message)
        return ViewResult(redirect=path)

    def _home(self, teller_session: TellerSessionModel, account: AccountModel) -> ViewResult:
        return self._page(teller_session, "home", account=AccountView.model_validate(account, from_attributes=True))

    @staticmethod
    def _parse(form: Type[FormT], data: dict[str, Any]) -> tuple[Optional[FormT], set[str]]:
        try:
            return form.model_validate(data), set()
        except ValidationError as exc:
            return None, {str(error["loc"][0]) for error in exc.errors() if error["loc"]}

    @staticmethod
    def _failure_message(outcome: Outcome) -> str:
        if outcome.reason is FailureReason.INSUFFICIENT_FUNDS:
            return MSG_INSUFFICIENT
        if outcome.reason is FailureReason.SAME_ACCOUNT:
            return MSG_BAD_DESTINATION
        return MSG_FAILED

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------
    def login_page(self, teller_session: TellerSessionModel) -> ViewResult:
        account = self._current_account(teller_session)
        if account is not None:
            return self._home(teller_session, account)
        return self._page(teller_session, "login")

    def login(self, teller_session: TellerSessionModel, account_number: str) -> ViewResult:
        form, _ = self._parse(LoginForm, {"accountNumber": account_number})
        account = self.accounts.find_by_id(form.account_number) if form else None
        if account is None:
            logger.info("session.login.rejected", extra={"account_number": account_number})
            return self._redirect(teller_session, LOGIN_PATH, MSG_BAD_ACCOUNT)

        self.sessions.authenticate(teller_session, account.id)
        return self._home(teller_session, account)

    def logout(self, teller_session: TellerSessionModel) -> ViewResult:
        self.sessions.clear(teller_session)
        return ViewResult(redirect=LOGIN_PATH, end_session=True)

    # ------------------------------------------------------------------
    # Money operations
    # ------------------------------------------------------------------
    def deposit_page(self, teller_session: TellerSessionModel) -> ViewResult:
        self._require_account(teller_session)
        return self._page(teller_session, "deposit")

    def deposit(self, teller_session: TellerSessionModel, amount: str) -> ViewResult:
        account = self._require_account(teller_session)
        form, _ = self._parse(AmountForm, {"amount": amount})
        if form is None:
            return self._redirect(teller_session, DEPOSIT_PATH, MSG_BAD_AMOUNT)

        outcome = self.service.deposit(account, form.amount)
        if not outcome:
            return self._redirect(teller_session, DEPOSIT_PATH, self._failure_message(outcome))

        return self._redirect(teller_session, LOGIN_PATH, MSG_DEPOSIT_OK)

    def withdraw_page(self, teller_session: TellerSessionModel) -> ViewResult:
        self._require_account(teller_session)
        return self._page(teller_session, "withdraw")

    def withdraw(self, teller_session: TellerSessionModel, amount: str) -> ViewResult:
        account = self._require_account(teller_session)
        form, _ = self._parse(AmountForm, {"amount": amount})
        if form is None:
            return self._redirect(teller_session, WITHDRAW_PATH, MSG_BAD_AMOUNT)

        outcome = self.service.withdraw(account, form.amount)
        if not outcome:
            return self._redirect(teller_session, WITHDRAW_PATH, self._failure_message(outcome))

        return self._redirect(teller_session, LOGIN_PATH, MSG_WITHDRAW_OK)

    def transfer_page(self, teller_session: TellerSessionModel) -> ViewResult:
        self._require_account(teller_session)
        return self._page(teller_session, "transfer")

    def transfer(
        self,
        teller_session: TellerSessionModel,
        amount: str,
        destination_account_id: str,
    ) -> ViewResult:
        source = self._require_account(teller_session)
        form, invalid = self._parse(
            TransferForm,
            {"amount": amount, "destinationAccountId": destination_account_id},
        )
        if "amount" in invalid:
            return self._redirect(teller_session, TRANSFER_PATH, MSG_BAD_AMOUNT)
        if form is None or form.destination_account_id == source.id:
            return self._redirect(teller_session, TRANSFER_PATH, MSG_BAD_DESTINATION)

        destination = self.accounts.find_by_id(form.destination_account_id)
        if destination is None:
            return self._redirect(teller_session, TRANSFER_PATH, MSG_BAD_DESTINATION)

        outcome = self.service.transfer(source, destination, form.amount)
        if not outcome:
            return self._redirect(teller_session, TRANSFER_PATH, self._failure_message(outcome))

        return self._redirect(teller_session, LOGIN_PATH, MSG_TRANSFER_OK)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def movements_page(self, teller_session: TellerSessionModel) -> ViewResult:
        account = self._require_account(teller_session)
        items = [
            MovementView.model_validate(movement, from_attributes=True)
            for movement in self.movements.list_by_account(account.id)
        ]
        return self._page(
            teller_session,
            "movements",
            account=AccountView.model_validate(account, from_attributes=True),
            movements=items,
        )
