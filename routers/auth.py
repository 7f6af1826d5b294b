from fastapi import APIRouter, Depends, Request

import config
from access_policy import Principal
from account_service import AccountService
from dependencies import get_account_service, get_principal, limiter
from schemas import TokenResponse, UserCreate, UserLogin, UserOut

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"]
)


@router.post("/register", response_model=TokenResponse)
def register(user: UserCreate, accounts: AccountService = Depends(get_account_service)):
    """
    Registriert einen neuen Benutzer im System.

    Prueft, ob die E-Mail bereits existiert, und speichert das Passwort
    gehasht (bcrypt). Neue Konten haben immer die Rolle "user".

    Args:
        user (UserCreate): E-Mail, Name und Klartext-Passwort.
        accounts (AccountService): Kontoverwaltung.

    Returns:
        TokenResponse: Access Token und der angelegte Benutzer.

    Raises:
        Conflict (409): Wenn die E-Mail bereits vergeben ist.
    """
    return accounts.register(user)


@router.post("/login", response_model=TokenResponse)
@limiter.limit(config.LOGIN_RATE_LIMIT)  # Brute-Force-Schutz
def login(request: Request, user: UserLogin, accounts: AccountService = Depends(get_account_service)):
    """
    Authentifiziert einen Benutzer und stellt ein JWT Access Token aus.

    Rate Limiting per Client-Adresse via `slowapi`.

    Raises:
        Unauthenticated (401): Bei falscher E-Mail oder falschem Passwort.
    """
    return accounts.login(user.email, user.password)


@router.get("/me", response_model=UserOut)
def me(principal: Principal = Depends(get_principal), accounts: AccountService = Depends(get_account_service)):
    return accounts.me(principal)
