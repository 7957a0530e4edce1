from .accounts import AccountService
from .repository import AccountStore, MovementStore
from .sessions import SessionStore
from .teller import TellerController, ViewResult

__all__ = [
    "AccountService",
    "AccountStore",
    "MovementStore",
    "SessionStore",
    "TellerController",
    "ViewResult",
]
