from typing import List

from fastapi import APIRouter

import reporting
from db import SessionDep
from schemas import AssetRead

router = APIRouter(tags=["assets"])


@router.get("/asset", response_model=List[AssetRead])
def list_assets(session: SessionDep):
    """
    List every asset with its current status.
    """
    return reporting.list_assets(session)
