from __future__ import annotations

from html import escape
from typing import Any, Callable

from fastapi import Response
from fastapi.responses import HTMLResponse, RedirectResponse

from ..core.config import get_settings
from ..models import AccountView, MovementView, TellerSessionModel
from ..services import SessionStore, ViewResult


def _amount_form(action: str, extra_fields: str = "") -> str:
    return (
        f'<form method="post" action="{action}">'
        '<label>Amount <input name="amount" inputmode="decimal" required></label>'
        f"{extra_fields}<button type=\"submit\">Confirm</button></form>"
        '<p><a href="/login">Back</a></p>'
    )


def _login(context: dict[str, Any]) -> str:
    return (
        '<form method="post" action="/login">'
        '<label>Account number <input name="accountNumber" inputmode="numeric" required></label>'
        '<button type="submit">Enter</button></form>'
    )


def _home(context: dict[str, Any]) -> str:
    account: AccountView = context["account"]
    return (
        f"<p>Account <strong>{account.id}</strong> ({escape(account.account_type)})</p>"
        f"<p>Balance: <span class=\"balance\">{account.balance:.2f}</span></p>"
        "<ul>"
        '<li><a href="/ingresar">Deposit</a></li>'
        '<li><a href="/extraer">Withdraw</a></li>'
        '<li><a href="/transferencia">Transfer</a></li>'
        '<li><a href="/movimientos">Movements</a></li>'
        '<li><a href="/logout">Log out</a></li>'
        "</ul>"
    )


def _movements(context: dict[str, Any]) -> str:
    movements: list[MovementView] = context["movements"]
    rows = "".join(
        f"<tr><td>{movement.ts.isoformat()}</td><td>{escape(movement.kind)}</td>"
        f"<td>{movement.amount:.2f}</td></tr>"
        for movement in movements
    )
    return (
        "<table><thead><tr><th>Date</th><th>Operation</th><th>Amount</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        '<p><a href="/login">Back</a></p>'
    )


_VIEWS: dict[str, tuple[str, Callable[[dict[str, Any]], str]]] = {
    "login": ("Login", _login),
    "home": ("Home", _home),
    "deposit": ("Deposit", lambda context: _amount_form("/ingresar")),
    "withdraw": ("Withdraw", lambda context: _amount_form("/extraer")),
    "transfer": (
        "Transfer",
        lambda context: _amount_form(
            "/transferencia",
            '<label>Destination account <input name="destinationAccountId" inputmode="numeric" required></label>',
        ),
    ),
    "movements": ("Movements", _movements),
}


def render(result: ViewResult) -> HTMLResponse:
    title, body = _VIEWS[result.view]
    flash = f'<p class="flash">{escape(result.flash)}</p>' if result.flash else ""
    page = (
        "<!doctype html><html><head>"
        f"<title>{escape(get_settings().app_name)} - {title}</title>"
        f"</head><body><h1>{title}</h1>{flash}{body(result.context)}</body></html>"
    )
    return HTMLResponse(page, headers={"X-View": result.view})


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        token,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


def respond(result: ViewResult, teller_session: TellerSessionModel) -> Response:
    if result.redirect is not None:
        response: Response = RedirectResponse(result.redirect, status_code=303)
    else:
        response = render(result)

    if result.end_session:
        response.delete_cookie(get_settings().session_cookie_name)
    elif SessionStore.is_stored(teller_session):
        set_session_cookie(response, teller_session.token)
    return response
