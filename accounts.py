import logging
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from errors import Conflict, InvalidCredential, InvalidInput, UnknownUser
from models import ROLE_STUDENT, User
from schemas import Principal

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _require_credentials(username: Optional[str], password: Optional[str]) -> str:
    username = (username or "").strip()
    if not username or not password:
        raise InvalidInput("Username and password required")
    return username


def to_principal(user: User) -> Principal:
    return Principal(id=user.id, username=user.username, role=user.role or ROLE_STUDENT)


def get_user_by_username(session: Session, username: str) -> Optional[User]:
    return session.exec(select(User).where(User.username == username)).first()


def register(
    session: Session,
    username: Optional[str],
    password: Optional[str],
    role: str = ROLE_STUDENT,
) -> User:
    """
    Create an account with a salted password hash.
    Raises Conflict if the username is taken, including when a concurrent
    registration wins the unique constraint after our check.
    """
    username = _require_credentials(username, password)

    if get_user_by_username(session, username) is not None:
        raise Conflict("Username already exists")

    user = User(username=username, password_hash=hash_password(password), role=role)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict("Username already exists")
    session.refresh(user)

    logger.info(f"Registered user {user.username!r} (id={user.id}, role={user.role})")
    return user


def login(session: Session, username: Optional[str], password: Optional[str]) -> Principal:
    username = _require_credentials(username, password)

    user = get_user_by_username(session, username)
    if user is None:
        logger.info(f"Login rejected: unknown user {username!r}")
        raise UnknownUser()

    if not verify_password(password, user.password_hash):
        logger.info(f"Login rejected: bad password for {username!r}")
        raise InvalidCredential()

    logger.info(f"User {username!r} logged in")
    return to_principal(user)


def session_version(session: Session, user_id: int) -> int:
    user = session.get(User, user_id)
    return user.session_version if user is not None else 0


def load_principal(
    session: Session, user_id: int, version: Optional[int]
) -> Optional[Principal]:
    """
    Rebuild the principal for a session, or None if the account is gone or
    the session was ended by a logout since the cookie was issued.
    """
    user = session.get(User, user_id)
    if user is None or user.session_version != version:
        return None
    return to_principal(user)


def end_sessions(session: Session, user_id: int) -> None:
    """Invalidate every session cookie issued to this user so far."""
    user = session.get(User, user_id)
    if user is None:
        return
    user.session_version += 1
    session.add(user)
    session.commit()
    logger.info(f"Ended sessions of user {user.username!r}")
