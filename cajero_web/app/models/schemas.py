from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MovementKind = Literal["Deposit", "Withdrawal", "Transfer"]


class LoginForm(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_number: int = Field(..., alias="accountNumber")


class AmountForm(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2, description="Amount to move, in currency units")


class TransferForm(AmountForm):
    model_config = ConfigDict(populate_by_name=True)

    destination_account_id: int = Field(..., alias="destinationAccountId")


class AccountView(BaseModel):
    id: int
    balance: Decimal
    account_type: str


class MovementView(BaseModel):
    id: int
    ts: datetime
    account_id: int
    amount: Decimal = Field(..., description="Positive for credits, negative for debits")
    kind: MovementKind
