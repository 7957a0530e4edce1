from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from ..core import db
from ..core.db import create_engine_for_url, get_session, set_engine
from ..main import app
from ..core.money import to_cents
from ..models import AccountModel
from ..services import AccountStore, MovementStore


@pytest.fixture
def engine(tmp_path):
    test_engine = create_engine_for_url(f"sqlite:///{tmp_path / 'test.db'}")
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def seed(engine):
    def _seed(account_id: int, balance: str, account_type: str = "Corriente") -> None:
        with Session(engine) as session:
            outcome = AccountStore(session).save(
                AccountModel(id=account_id, balance_cents=to_cents(Decimal(balance)), account_type=account_type)
            )
            assert outcome.ok
            session.commit()

    return _seed


@pytest.fixture
def balance_of(engine):
    def _balance_of(account_id: int) -> Decimal:
        with Session(engine) as session:
            return AccountStore(session).find_by_id(account_id).balance

    return _balance_of


@pytest.fixture
def movements_of(engine):
    def _movements_of(account_id: int) -> list[tuple[Decimal, str]]:
        with Session(engine) as session:
            return [
                (movement.amount, movement.kind)
                for movement in MovementStore(session).list_by_account(account_id)
            ]

    return _movements_of


@pytest.fixture
def client(engine) -> TestClient:
    original_engine = db.engine
    set_engine(engine)

    def _get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session_override

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    set_engine(original_engine)
