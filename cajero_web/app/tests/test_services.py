import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from ..core.errors import AuthenticationRequiredError, FailureReason, Outcome
from ..core.money import from_cents, to_cents
from ..models import AccountModel, MovementModel, TellerSessionModel
from ..services import (
    AccountService,
    AccountStore,
    MovementStore,
    SessionStore,
    TellerController,
)


@pytest.fixture
def service(db_session: Session) -> AccountService:
    return AccountService(db_session)


@pytest.fixture
def controller(db_session: Session) -> TellerController:
    accounts = AccountStore(db_session)
    return TellerController(
        SessionStore(db_session),
        accounts,
        AccountService(db_session, accounts),
        MovementStore(db_session),
    )


def load(db_session: Session, account_id: int) -> AccountModel:
    return AccountStore(db_session).find_by_id(account_id)


# Account store -------------------------------------------------------------
def test_find_by_id_and_exists(db_session: Session, seed) -> None:
    seed(1001, "500.00", "Corriente")
    store = AccountStore(db_session)

    account = store.find_by_id(1001)
    assert account.balance == Decimal("500.00")
    assert account.account_type == "Corriente"
    assert store.exists(1001)

    assert store.find_by_id(2002) is None
    assert not store.exists(2002)


def test_save_reports_store_failure(db_session: Session, monkeypatch, caplog) -> None:
    def broken_flush(*args, **kwargs):
        raise OperationalError("UPDATE account", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "flush", broken_flush)

    with caplog.at_level(logging.ERROR):
        outcome = AccountStore(db_session).save(AccountModel(id=1, balance_cents=100))

    assert not outcome.ok
    assert outcome.reason is FailureReason.STORE_FAILURE
    assert "store.account.save_failed" in caplog.text


def test_debit_never_goes_negative(db_session: Session, seed) -> None:
    seed(1001, "10.00")
    store = AccountStore(db_session)

    assert store.debit(1001, 1001).reason is FailureReason.INSUFFICIENT_FUNDS
    assert store.debit(9999, 100).reason is FailureReason.ACCOUNT_NOT_FOUND
    assert store.credit(9999, 100).reason is FailureReason.ACCOUNT_NOT_FOUND
    assert store.debit(1001, 1000).ok


# Account service -----------------------------------------------------------
def test_deposit_increments_balance(db_session: Session, service: AccountService, seed) -> None:
    seed(1001, "500.00")
    account = load(db_session, 1001)

    outcome = service.deposit(account, Decimal("250.00"))

    assert outcome.ok
    assert account.balance == Decimal("750.00")


def test_withdraw_within_balance(db_session: Session, service: AccountService, seed) -> None:
    seed(1001, "750.00")
    account = load(db_session, 1001)

    assert service.withdraw(account, Decimal("750.00")).ok
    assert account.balance == Decimal("0.00")


def test_withdraw_over_balance_is_rejected(
    db_session: Session, service: AccountService, seed, balance_of
) -> None:
    seed(1001, "750.00")
    account = load(db_session, 1001)

    outcome = service.withdraw(account, Decimal("900.00"))

    assert not outcome.ok
    assert outcome.reason is FailureReason.INSUFFICIENT_FUNDS
    assert balance_of(1001) == Decimal("750.00")


def test_stale_snapshots_cannot_overdraw(engine, seed, balance_of) -> None:
    seed(1001, "100.00")

    with Session(engine) as first, Session(engine) as second:
        first_view = load(first, 1001)
        second_view = load(second, 1001)
        assert first_view.balance == second_view.balance == Decimal("100.00")

        assert AccountService(first).withdraw(first_view, Decimal("80.00")).ok
        late = AccountService(second).withdraw(second_view, Decimal("80.00"))

    assert late.reason is FailureReason.INSUFFICIENT_FUNDS
    assert balance_of(1001) == Decimal("20.00")


def test_transfer_moves_money(db_session: Session, service: AccountService, seed) -> None:
    seed(1001, "750.00")
    seed(1002, "100.00")
    source, destination = load(db_session, 1001), load(db_session, 1002)

    assert service.transfer(source, destination, Decimal("300.00")).ok
    assert source.balance == Decimal("450.00")
    assert destination.balance == Decimal("400.00")


def test_transfer_without_funds_leaves_destination_alone(
    db_session: Session, service: AccountService, seed, balance_of
) -> None:
    seed(1001, "10.00")
    seed(1002, "100.00")
    source, destination = load(db_session, 1001), load(db_session, 1002)

    outcome = service.transfer(source, destination, Decimal("10.01"))

    assert outcome.reason is FailureReason.INSUFFICIENT_FUNDS
    assert balance_of(1001) == Decimal("10.00")
    assert balance_of(1002) == Decimal("100.00")


def test_transfer_is_all_or_nothing(
    db_session: Session, service: AccountService, seed, balance_of, monkeypatch
) -> None:
    seed(1001, "500.00")
    seed(1002, "100.00")
    source, destination = load(db_session, 1001), load(db_session, 1002)

    monkeypatch.setattr(
        service.accounts,
        "credit",
        lambda account_id, cents: Outcome.failure(FailureReason.STORE_FAILURE, "lost connection"),
    )

    outcome = service.transfer(source, destination, Decimal("300.00"))

    assert outcome.reason is FailureReason.STORE_FAILURE
    assert balance_of(1001) == Decimal("500.00")
    assert balance_of(1002) == Decimal("100.00")


def test_transfer_to_same_account_is_refused(
    db_session: Session, service: AccountService, seed, balance_of, movements_of
) -> None:
    seed(1001, "500.00")
    account = load(db_session, 1001)

    outcome = service.transfer(account, account, Decimal("1.00"))

    assert not outcome.ok
    assert outcome.reason is FailureReason.SAME_ACCOUNT
    assert balance_of(1001) == Decimal("500.00")
    assert movements_of(1001) == []


def test_cent_withdrawals_drain_balance_exactly(
    db_session: Session, service: AccountService, seed, balance_of, movements_of
) -> None:
    seed(1001, "0.30")
    account = load(db_session, 1001)

    for _ in range(3):
        assert service.withdraw(account, Decimal("0.10")).ok

    assert balance_of(1001) == Decimal("0.00")
    assert movements_of(1001) == [(Decimal("-0.10"), "Withdrawal")] * 3
    assert service.withdraw(account, Decimal("0.01")).reason is FailureReason.INSUFFICIENT_FUNDS


def test_money_conversions() -> None:
    assert to_cents(Decimal("0.10")) == 10
    assert to_cents(Decimal("1234.5")) == 123450
    assert from_cents(-30) == Decimal("-0.30")
    assert from_cents(to_cents(Decimal("19.99"))) == Decimal("19.99")


def test_failed_movement_rolls_back_balance(
    db_session: Session, service: AccountService, seed, balance_of, movements_of, monkeypatch
) -> None:
    seed(1001, "100.00")
    account = load(db_session, 1001)

    monkeypatch.setattr(
        service.movements,
        "add",
        lambda movement: Outcome.failure(FailureReason.STORE_FAILURE, "read-only"),
    )

    outcome = service.deposit(account, Decimal("5.00"))

    assert outcome.reason is FailureReason.STORE_FAILURE
    assert balance_of(1001) == Decimal("100.00")
    assert movements_of(1001) == []


def test_transfer_rolls_back_when_second_leg_is_not_logged(
    db_session: Session, service: AccountService, seed, balance_of, movements_of, monkeypatch
) -> None:
    seed(1001, "500.00")
    seed(1002, "100.00")
    source, destination = load(db_session, 1001), load(db_session, 1002)
    add = service.movements.add

    def add_source_leg_only(movement: MovementModel) -> Outcome:
        if movement.account_id == 1002:
            return Outcome.failure(FailureReason.STORE_FAILURE, "disk full")
        return add(movement)

    monkeypatch.setattr(service.movements, "add", add_source_leg_only)

    outcome = service.transfer(source, destination, Decimal("300.00"))

    assert outcome.reason is FailureReason.STORE_FAILURE
    assert balance_of(1001) == Decimal("500.00")
    assert balance_of(1002) == Decimal("100.00")
    assert movements_of(1001) == []
    assert movements_of(1002) == []


# Movement store ------------------------------------------------------------
def test_movements_are_listed_per_account_in_order(db_session: Session, seed) -> None:
    seed(1001, "0.00")
    seed(1002, "0.00")
    store = MovementStore(db_session)

    for account_id, amount, kind in [
        (1001, "5.00", "Deposit"),
        (1002, "7.00", "Deposit"),
        (1001, "-2.00", "Withdrawal"),
        (1001, "-1.00", "Transfer"),
    ]:
        saved = store.insert(MovementModel(account_id=account_id, amount_cents=to_cents(Decimal(amount)), kind=kind))
        assert saved.ok
        assert saved.value.id is not None
        assert saved.value.ts is not None

    history = store.list_by_account(1001)
    assert [(m.amount, m.kind) for m in history] == [
        (Decimal("5.00"), "Deposit"),
        (Decimal("-2.00"), "Withdrawal"),
        (Decimal("-1.00"), "Transfer"),
    ]
    assert all(m.account_id == 1001 for m in history)


def test_movement_insert_failure_is_reported(db_session: Session) -> None:
    outcome = MovementStore(db_session).insert(
        MovementModel(account_id=4242, amount_cents=100, kind="Deposit")
    )

    assert not outcome.ok
    assert outcome.reason is FailureReason.STORE_FAILURE


# Session store -------------------------------------------------------------
def stored_sessions(db_session: Session) -> list[TellerSessionModel]:
    return list(db_session.exec(select(TellerSessionModel)))


def test_session_store_lifecycle(db_session: Session, seed) -> None:
    seed(1001, "0.00")
    sessions = SessionStore(db_session)

    record = sessions.open(None)
    assert sessions.current_account_id(record) is None
    assert not SessionStore.is_stored(record)
    assert sessions.pop_flash(record) is None
    assert stored_sessions(db_session) == []

    sessions.authenticate(record, 1001)
    assert SessionStore.is_stored(record)
    assert sessions.open(record.token).token == record.token
    assert sessions.current_account_id(sessions.open(record.token)) == 1001
    assert sessions.open("unknown-token").token != record.token

    sessions.push_flash(record, "hello")
    assert sessions.pop_flash(record) == "hello"
    assert sessions.pop_flash(record) is None

    token = record.token
    sessions.clear(record)
    reopened = sessions.open(token)
    assert reopened.token != token
    assert sessions.current_account_id(reopened) is None
    assert stored_sessions(db_session) == []


def test_flash_alone_stores_a_session(db_session: Session) -> None:
    sessions = SessionStore(db_session)
    record = sessions.open(None)

    sessions.push_flash(record, "CUENTA INCORRECTA")

    assert [row.token for row in stored_sessions(db_session)] == [record.token]
    assert sessions.pop_flash(sessions.open(record.token)) == "CUENTA INCORRECTA"


def test_expired_sessions_are_rejected_and_purged(db_session: Session, seed) -> None:
    seed(1001, "0.00")
    sessions = SessionStore(db_session, ttl=timedelta(minutes=30))
    stale_at = datetime.now(UTC) - timedelta(hours=1)

    expired = sessions.open(None)
    sessions.authenticate(expired, 1001)
    forgotten = sessions.open(None)
    sessions.push_flash(forgotten, "never read")
    live = sessions.open(None)
    sessions.authenticate(live, 1001)

    expired_token, forgotten_token, live_token = expired.token, forgotten.token, live.token
    expired.created_at = stale_at
    forgotten.created_at = stale_at
    db_session.add_all([expired, forgotten])
    db_session.commit()

    reopened = sessions.open(expired_token)

    assert reopened.token != expired_token
    assert sessions.current_account_id(reopened) is None
    assert not SessionStore.is_stored(reopened)
    assert [row.token for row in stored_sessions(db_session)] == [live_token]
    assert db_session.get(TellerSessionModel, forgotten_token) is None
    assert sessions.current_account_id(sessions.open(live_token)) == 1001


# Teller controller ---------------------------------------------------------
def test_controller_requires_authentication(controller: TellerController, db_session: Session) -> None:
    record = SessionStore(db_session).open(None)

    with pytest.raises(AuthenticationRequiredError):
        controller.deposit(record, "10")


def test_session_for_vanished_account_is_anonymous(
    controller: TellerController, db_session: Session, seed
) -> None:
    seed(1001, "0.00")
    sessions = SessionStore(db_session)
    record = sessions.open(None)
    sessions.authenticate(record, 1001)

    db_session.delete(load(db_session, 1001))
    db_session.commit()

    assert controller.login_page(record).view == "login"
    assert sessions.current_account_id(record) is None


def test_unrecorded_movement_fails_the_operation(
    controller: TellerController, db_session: Session, seed, balance_of, movements_of, monkeypatch
) -> None:
    seed(1001, "0.00")
    sessions = SessionStore(db_session)
    record = sessions.open(None)
    sessions.authenticate(record, 1001)

    monkeypatch.setattr(
        controller.service.movements,
        "add",
        lambda movement: Outcome.failure(FailureReason.STORE_FAILURE, "read-only"),
    )

    result = controller.deposit(record, "5.00")

    assert result.redirect == "/ingresar"
    assert sessions.pop_flash(record) == "operation could not be completed"
    assert balance_of(1001) == Decimal("0.00")
    assert movements_of(1001) == []
