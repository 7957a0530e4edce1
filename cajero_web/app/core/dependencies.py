from fastapi import Depends, Request
from sqlmodel import Session

from ..models import TellerSessionModel
from ..services import AccountService, AccountStore, MovementStore, SessionStore, TellerController
from .config import get_settings
from .db import get_session

def get_teller_session(request: Request, session: Session = Depends(get_session)) -> TellerSessionModel:
    token = request.cookies.get(get_settings().session_cookie_name)
    return SessionStore(session).open(token)

def get_teller_controller(session: Session = Depends(get_session)) -> TellerController:
    accounts = AccountStore(session)
    movements = MovementStore(session)
    return TellerController(
        SessionStore(session),
        accounts,
        AccountService(session, accounts, movements),
        movements,
    )
