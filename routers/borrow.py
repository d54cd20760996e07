from fastapi import APIRouter

import lifecycle
import reporting
from db import SessionDep
from schemas import ActiveRequestCheck, BorrowCreate, BorrowDecision
from .auth import CurrentPrincipalDep

router = APIRouter(tags=["borrow"])


@router.post("/borrow")
def submit_borrow_request(
    data: BorrowCreate,
    session: SessionDep,
    principal: CurrentPrincipalDep,
):
    borrow_id = lifecycle.submit_borrow_request(
        session,
        principal,
        data.asset_id,
        data.borrow_date,
        data.return_date,
    )
    return {"message": "Borrow request submitted successfully", "id": borrow_id}


@router.patch("/borrow/{borrow_id}")
def decide_borrow_request(
    borrow_id: int,
    update: BorrowDecision,
    session: SessionDep,
    principal: CurrentPrincipalDep,
):
    borrowing = lifecycle.decide(session, principal, borrow_id, update.status)
    return {
        "message": f"Borrow request {borrowing.status.lower()}",
        "id": borrowing.id,
        "status": borrowing.status,
    }


@router.get("/borrow-requests/check", response_model=ActiveRequestCheck)
def check_own_requests(session: SessionDep, principal: CurrentPrincipalDep):
    return reporting.active_requests(session, principal)
