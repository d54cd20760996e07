"""
Borrow request lifecycle.

A Borrowing row starts Pending and is decided exactly once by a lender:

    Pending -> Approved      asset Pending -> Borrowed, returned stays False
    Pending -> Disapproved   asset Pending -> Available, returned = True

Every operation here writes through conditional UPDATEs keyed on the expected
prior status and commits once, so a losing concurrent caller sees zero affected
rows and nothing is left half-written.
"""
import logging
from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from errors import (
    ActiveBorrowExists,
    AssetUnavailable,
    Forbidden,
    InvalidInput,
    NotFound,
    Unauthorized,
)
from models import (
    ACTIVE_BORROW_STATUSES,
    ASSET_AVAILABLE,
    ASSET_BORROWED,
    ASSET_PENDING,
    BORROW_APPROVED,
    BORROW_PENDING,
    DECISIONS,
    ROLE_LENDER,
    Asset,
    Borrowing,
)
from schemas import Principal

logger = logging.getLogger(__name__)


def _has_active_borrow(session: Session, user_id: int) -> bool:
    found = session.exec(
        select(Borrowing.id).where(
            Borrowing.user_id == user_id,
            Borrowing.status.in_(ACTIVE_BORROW_STATUSES),
            Borrowing.returned == False,  # noqa: E712
        )
    ).first()
    return found is not None


def submit_borrow_request(
    session: Session,
    principal: Optional[Principal],
    asset_id: Optional[int],
    borrow_date: Optional[date],
    return_date: Optional[date],
) -> int:
    """
    Open a Pending borrow request for ``principal`` and reserve the asset.

    Returns the new borrowing id. The reservation and the new row are
    committed together or not at all.
    """
    if principal is None:
        raise Unauthorized()
    if not asset_id or borrow_date is None or return_date is None:
        raise InvalidInput("Missing required fields")
    if return_date < borrow_date:
        raise InvalidInput("return_date cannot be before borrow_date")

    try:
        if _has_active_borrow(session, principal.id):
            raise ActiveBorrowExists()

        asset = session.get(Asset, asset_id)
        if asset is None:
            raise NotFound("Asset not found")
        if asset.status != ASSET_AVAILABLE:
            raise AssetUnavailable()

        reserved = session.exec(
            update(Asset)
            .where(Asset.id == asset_id, Asset.status == ASSET_AVAILABLE)
            .values(status=ASSET_PENDING)
        )
        if reserved.rowcount != 1:
            raise AssetUnavailable()

        borrowing = Borrowing(
            asset_id=asset_id,
            user_id=principal.id,
            borrow_date=borrow_date,
            return_date=return_date,
            status=BORROW_PENDING,
            returned=False,
        )
        session.add(borrowing)
        # the partial unique index on active rows fires here
        session.flush()
        borrowing_id = borrowing.id
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.warning(f"User {principal.id} lost an active-borrow race on asset {asset_id}")
        raise ActiveBorrowExists()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Borrow request {borrowing_id} opened by user {principal.id} for asset {asset_id}")
    return borrowing_id


def decide(
    session: Session,
    principal: Optional[Principal],
    borrow_id: int,
    decision: Optional[str],
) -> Borrowing:
    """
    Approve or disapprove a Pending request on behalf of a lender.

    Unknown and already-decided requests both raise NotFound; only one of
    several concurrent decisions on the same request can succeed.
    """
    if principal is None:
        raise Unauthorized()
    if principal.role != ROLE_LENDER:
        raise Forbidden("Only lenders can approve or disapprove requests")
    if decision not in DECISIONS:
        raise InvalidInput("Status must be 'Approved' or 'Disapproved'")

    approved = decision == BORROW_APPROVED
    try:
        borrowing = session.exec(
            select(Borrowing).where(
                Borrowing.id == borrow_id,
                Borrowing.status == BORROW_PENDING,
            )
        ).first()
        if borrowing is None:
            raise NotFound("Borrow request not found or already processed")

        closed = session.exec(
            update(Borrowing)
            .where(Borrowing.id == borrow_id, Borrowing.status == BORROW_PENDING)
            .values(status=decision, returned=not approved, lender_id=principal.id)
        )
        if closed.rowcount != 1:
            raise NotFound("Borrow request not found or already processed")

        session.exec(
            update(Asset)
            .where(Asset.id == borrowing.asset_id)
            .values(status=ASSET_BORROWED if approved else ASSET_AVAILABLE)
        )
        session.commit()
    except NotFound:
        session.rollback()
        logger.warning(f"Decision {decision!r} on borrow request {borrow_id} found nothing pending")
        raise
    except Exception:
        session.rollback()
        raise

    session.refresh(borrowing)
    logger.info(f"Borrow request {borrow_id} {decision.lower()} by lender {principal.id}")
    return borrowing
