from fastapi import APIRouter, Depends, Form, Response

from ..core.dependencies import get_teller_controller, get_teller_session
from ..models import TellerSessionModel
from ..services import TellerController
from .views import respond


router = APIRouter(tags=["teller"])

@router.get("/login")
def login_page(
    teller_session: TellerSessionModel = Depends(get_teller_session),
    controller: TellerController = Depends(get_teller_controller),
) -> Response:
    return respond(controller.login_page(teller_session), teller_session)

@router.post("/login")
def login(
    account_number: str = Form("", alias="accountNumber"),
    teller_session: TellerSessionModel = Depends(get_teller_session),
    controller: TellerController = Depends(get_teller_controller),
) -> Response:
    return respond(controller.login(teller_session, account_number), teller_session)

@router.get("/logout")
def logout(
    teller_session: TellerSessionModel = Depends(get_teller_session),
    controller: TellerController = Depends(get_teller_controller),
) -> Response:
    return respond(controller.logout(teller_session), teller_session)

@router.get("/ingresar")
def deposit_page(
    teller_session: TellerSessionModel = Depends(get_teller_session),
    controller: TellerController = Depends(get_teller_controller),
) -> Response:
    return respond(controller.deposit_page(teller_session), teller_session)

@router.post("/ingresar")
def deposit(
    amount: str = Form(""),
    teller_session: TellerSessionModel = Depends(get_teller_session),
    controller: TellerController = Depends(get_teller_controller),
) -> Response:
    return respond(controller.deposit(teller_session, amount), teller_session)

@router.get("/extraer")
def withdraw_page(
    teller_session: TellerSessionModel = Depends(get_teller_session),
    controller: TellerController = Depends(get_teller_controller),
) -> Response:
    return respond(controller.withdraw_page(teller_session), teller_session)

@router.post("/extraer")
def withdraw(
    amount: str = Form(""),
    teller_session: TellerSessionModel = Depends(get_teller_session),
    controller: TellerController = Depends(get_teller_controller),
) -> Response:
    return respond(controller.withdraw(teller_session, amount), teller_session)

@router.get("/transferencia")
def transfer_page(
    teller_session: TellerSessionModel = Depends(get_teller_session),
    controller: TellerController = Depends(get_teller_controller),
) -> Response:
    return respond(controller.transfer_page(teller_session), teller_session)

@router.post("/transferencia")
def transfer(
    amount: str = Form(""),
    destination_account_id: str = Form("", alias="destinationAccountId"),
    teller_session: TellerSessionModel = Depends(get_teller_session),
    controller: TellerController = Depends(get_teller_controller),
) -> Response:
    result = controller.transfer(teller_session, amount, destination_account_id)
    return respond(result, teller_session)

@router.get("/movimientos")
def movements_page(
    teller_session: TellerSessionModel = Depends(get_teller_session),
    controller: TellerController = Depends(get_teller_controller),
) -> Response:
    return respond(controller.movements_page(teller_session), teller_session)

__all__ = ["router"]
