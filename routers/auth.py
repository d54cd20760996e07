import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Cookie, Depends, Response, status
from itsdangerous import BadSignature, URLSafeTimedSerializer

import accounts
import config
from db import SessionDep
from errors import Unauthorized
from schemas import Credentials, Principal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

serializer = URLSafeTimedSerializer(config.SECRET_KEY, salt="borrowdesk-session")


def create_session_token(principal: Principal, version: int) -> str:
    """
    Store user_id + role + session version in the signed token.
    Example data:
        {"user_id": 3, "role": "student", "version": 0}
    """
    return serializer.dumps(
        {"user_id": principal.id, "role": principal.role, "version": version}
    )


def verify_session_token(token: str, max_age_seconds: int = config.SESSION_MAX_AGE):
    """
    Returns dict {'user_id': ..., 'role': ..., 'version': ...} if valid,
    or None if token is invalid/expired.
    """
    try:
        return serializer.loads(token, max_age=max_age_seconds)
    except BadSignature:
        return None


def get_optional_principal(
    session: SessionDep,
    session_token: Optional[str] = Cookie(default=None, alias=config.SESSION_COOKIE_NAME),
) -> Optional[Principal]:
    """
    Reads the session cookie, verifies it and reloads the account.
    Returns None when there is no usable session.
    """
    if session_token is None:
        return None

    data = verify_session_token(session_token)
    if not data or "user_id" not in data:
        return None

    return accounts.load_principal(session, data["user_id"], data.get("version"))


OptionalPrincipalDep = Annotated[Optional[Principal], Depends(get_optional_principal)]


def require_principal(principal: OptionalPrincipalDep) -> Principal:
    if principal is None:
        raise Unauthorized()
    return principal


CurrentPrincipalDep = Annotated[Principal, Depends(require_principal)]


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite="lax",
        max_age=config.SESSION_MAX_AGE,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(data: Credentials, session: SessionDep):
    """
    Register a new student account with a hashed password.
    """
    accounts.register(session, data.username, data.password)
    return {"message": "Register successful!"}


@router.post("/login")
def login(data: Credentials, session: SessionDep, response: Response):
    """
    Check username + password and bind the principal to a signed cookie.
    """
    principal = accounts.login(session, data.username, data.password)
    version = accounts.session_version(session, principal.id)
    _set_session_cookie(response, create_session_token(principal, version))
    return {"message": "Login successful", "user": principal}


@router.post("/logout")
def logout(response: Response, session: SessionDep, principal: OptionalPrincipalDep):
    """
    Clear the session cookie and end the user's sessions server-side, so a
    copy of the cookie taken before logout no longer authenticates.
    """
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    if principal is not None:
        accounts.end_sessions(session, principal.id)
        logger.info(f"User {principal.username!r} logged out")
    return {"message": "Logout successful"}


@router.get("/me")
def read_me(principal: OptionalPrincipalDep):
    """
    Report whether the caller has a session, and as whom.
    """
    if principal is None:
        return {"loggedIn": False}
    return {"loggedIn": True, "user": principal}
