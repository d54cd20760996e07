"""Read-only projections over users, assets and borrowing."""
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import aliased
from sqlmodel import Session, select

from errors import Forbidden, Unauthorized
from models import (
    ACTIVE_BORROW_STATUSES,
    ASSET_AVAILABLE,
    ASSET_BORROWED,
    ASSET_DISABLED,
    BORROW_PENDING,
    DECISIONS,
    ROLE_LENDER,
    ROLE_STAFF,
    ROLE_STUDENT,
    Asset,
    Borrowing,
    User,
)
from schemas import ActiveRequestCheck, BorrowRecord, DashboardCounts, Principal

Borrower = aliased(User, name="borrower")
Lender = aliased(User, name="lender")


def _record_query():
    return (
        select(Borrowing, Asset.asset_name, Borrower.username, Lender.username)
        .join(Asset, Asset.id == Borrowing.asset_id)
        .join(Borrower, Borrower.id == Borrowing.user_id)
        .outerjoin(Lender, Lender.id == Borrowing.lender_id)
    )


def _to_records(rows) -> List[BorrowRecord]:
    records = []
    for borrowing, asset_name, username, lender_username in rows:
        records.append(
            BorrowRecord(
                id=borrowing.id,
                asset_id=borrowing.asset_id,
                asset_name=asset_name,
                user_id=borrowing.user_id,
                username=username,
                lender_id=borrowing.lender_id,
                lender_username=lender_username,
                borrow_date=borrowing.borrow_date,
                return_date=borrowing.return_date,
                status=borrowing.status,
                returned=borrowing.returned,
            )
        )
    return records


def list_assets(session: Session) -> List[Asset]:
    return session.exec(select(Asset).order_by(Asset.id)).all()


def history(session: Session, principal: Optional[Principal]) -> List[BorrowRecord]:
    """
    Decided requests visible to the caller, newest first.
    Students see their own borrows, lenders the ones they decided, staff all.
    """
    if principal is None:
        raise Unauthorized()

    query = _record_query().where(Borrowing.status.in_(DECISIONS))
    if principal.role == ROLE_STUDENT:
        query = query.where(Borrowing.user_id == principal.id)
    elif principal.role == ROLE_LENDER:
        query = query.where(Borrowing.lender_id == principal.id)
    elif principal.role != ROLE_STAFF:
        raise Forbidden("Your role cannot view borrow history")

    query = query.order_by(
        Borrowing.borrow_date.desc(),
        Borrowing.return_date.desc(),
        Borrowing.id.desc(),
    )
    return _to_records(session.exec(query).all())


def pending_queue(session: Session) -> List[BorrowRecord]:
    query = (
        _record_query()
        .where(Borrowing.status == BORROW_PENDING)
        .order_by(Borrowing.id)
    )
    return _to_records(session.exec(query).all())


def active_requests(session: Session, principal: Optional[Principal]) -> ActiveRequestCheck:
    if principal is None:
        raise Unauthorized()

    query = (
        _record_query()
        .where(
            Borrowing.user_id == principal.id,
            Borrowing.status.in_(ACTIVE_BORROW_STATUSES),
            Borrowing.returned == False,  # noqa: E712
        )
        .order_by(Borrowing.id.desc())
    )
    requests = _to_records(session.exec(query).all())
    return ActiveRequestCheck(hasActiveRequest=bool(requests), requests=requests)


def dashboard_counts(session: Session) -> DashboardCounts:
    rows = session.exec(
        select(Asset.status, func.count(Asset.id)).group_by(Asset.status)
    ).all()
    counts = {status: total for status, total in rows}
    return DashboardCounts(
        Available=counts.get(ASSET_AVAILABLE, 0),
        Borrowed=counts.get(ASSET_BORROWED, 0),
        Disabled=counts.get(ASSET_DISABLED, 0),
    )
