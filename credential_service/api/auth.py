"""JSON auth endpoints for issuer accounts (/auth/register, /auth/login).

Both return { accessToken, user: { id, email, name } }.  The token is a
seven-day ES256 session; there is no refresh flow, callers log in again.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from credential_service.models.account import Account
from credential_service.models.identifiers import is_email
from credential_service.repos.account_repo import InMemoryAccountRepo
from credential_service.services import auth_service, token_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# Module-level singleton; tests clear it between runs.
account_repo = InMemoryAccountRepo()

MIN_PASSWORD_LENGTH = 8


# --- Request / Response schemas -------------------------------------------


class LoginIn(BaseModel):
    email: str
    password: str


class RegisterIn(BaseModel):
    name: str
    email: str
    password: str


class AccountOut(BaseModel):
    id: str
    email: str
    name: str


class AuthResponse(BaseModel):
    accessToken: str
    user: AccountOut


def _auth_response(account: Account) -> AuthResponse:
    token = token_service.issue_token(account.email, {"name": account.name})
    return AuthResponse(
        accessToken=token,
        user=AccountOut(id=str(account.id), email=account.email, name=account.name),
    )


# --- POST /auth/login -----------------------------------------------------


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginIn) -> AuthResponse:
    email = payload.email.lower().strip()

    account = auth_service.authenticate(account_repo, email, payload.password)
    if account is None:
        logger.warning("Login failed  email=%s", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Invalid email or password"},
        )

    logger.info("Login succeeded  account_id=%s email=%s", account.id, email)
    return _auth_response(account)


# --- POST /auth/register --------------------------------------------------


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
def register(payload: RegisterIn) -> AuthResponse:
    email = payload.email.lower().strip()
    name = payload.name.strip()

    if not is_email(email):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Invalid email address"},
        )
    if not name:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Name is required"},
        )
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"},
        )

    account = Account.new(
        email=email,
        name=name,
        password_hash=auth_service.hash_password(payload.password),
    )
    try:
        account_repo.add(account)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": "An account with this email already exists"},
        ) from None

    logger.info("Account registered  account_id=%s email=%s", account.id, email)
    return _auth_response(account)
