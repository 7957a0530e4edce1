from __future__ import annotations
from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional
from sqlmodel import Field, SQLModel

from ..core.money import from_cents

class Account(SQLModel, table=True):
    # ids are issued outside this application; accounts are never created here
    id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    balance_cents: int = Field(default=0, ge=0, description="Balance in minor units (e.g. cents)")
    account_type: str = Field(default="")

    @property
    def balance(self) -> Decimal:
        return from_cents(self.balance_cents)

class Movement(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: int = Field(foreign_key="account.id", index=True)
    ts: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
    amount_cents: int
    kind: str

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

class TellerSession(SQLModel, table=True):
    token: str = Field(primary_key=True)
    account_id: Optional[int] = None
    flash: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
