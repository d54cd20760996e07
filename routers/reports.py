from typing import List

from fastapi import APIRouter

import reporting
from db import SessionDep
from schemas import BorrowRecord, DashboardCounts
from .auth import CurrentPrincipalDep

router = APIRouter(tags=["reports"])


@router.get("/history", response_model=List[BorrowRecord])
def read_history(session: SessionDep, principal: CurrentPrincipalDep):
    """
    Decided borrow requests visible to the caller's role.
    """
    return reporting.history(session, principal)


@router.get("/checkrequest", response_model=List[BorrowRecord])
def read_pending_requests(session: SessionDep):
    """
    Pending requests awaiting a lender's decision.
    """
    return reporting.pending_queue(session)


@router.get("/dashboard", response_model=DashboardCounts)
def read_dashboard(session: SessionDep):
    return reporting.dashboard_counts(session)
