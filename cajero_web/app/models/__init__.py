from .db import Account as AccountModel
from .db import Movement as MovementModel
from .db import TellerSession as TellerSessionModel
from .schemas import (
    AccountView,
    AmountForm,
    LoginForm,
    MovementKind,
    MovementView,
    TransferForm,
)

__all__ = [
    "AccountView",
    "AmountForm",
    "LoginForm",
    "MovementKind",
    "MovementView",
    "TransferForm",
    "AccountModel",
    "MovementModel",
    "TellerSessionModel",
]
