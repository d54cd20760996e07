from datetime import date
from typing import Optional

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel

ROLE_STUDENT = "student"
ROLE_LENDER = "lender"
ROLE_STAFF = "staff"
ROLES = (ROLE_STUDENT, ROLE_LENDER, ROLE_STAFF)

ASSET_AVAILABLE = "Available"
ASSET_PENDING = "Pending"
ASSET_BORROWED = "Borrowed"
ASSET_DISABLED = "Disable"

BORROW_PENDING = "Pending"
BORROW_APPROVED = "Approved"
BORROW_DISAPPROVED = "Disapproved"
DECISIONS = (BORROW_APPROVED, BORROW_DISAPPROVED)
ACTIVE_BORROW_STATUSES = (BORROW_PENDING, BORROW_APPROVED)

_ACTIVE_BORROW_CLAUSE = "returned = false AND status IN ('Pending', 'Approved')"


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    password_hash: str
    role: Optional[str] = ROLE_STUDENT  # student | lender | staff
    # bumped on logout; cookies signed with an older value stop working
    session_version: int = 0


class Asset(SQLModel, table=True):
    __tablename__ = "assets"

    id: Optional[int] = Field(default=None, primary_key=True)
    asset_name: str
    status: str = ASSET_AVAILABLE  # Available | Pending | Borrowed | Disable


class Borrowing(SQLModel, table=True):
    __tablename__ = "borrowing"
    # One open request or loan per borrower, enforced by the database.
    __table_args__ = (
        Index(
            "uq_borrowing_active_user",
            "user_id",
            unique=True,
            sqlite_where=text(_ACTIVE_BORROW_CLAUSE),
            postgresql_where=text(_ACTIVE_BORROW_CLAUSE),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    asset_id: int = Field(foreign_key="assets.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    lender_id: Optional[int] = Field(default=None, foreign_key="users.id")

    borrow_date: date
    return_date: date
    status: str = BORROW_PENDING  # Pending | Approved | Disapproved
    returned: bool = False
