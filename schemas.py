from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class Principal(BaseModel):
    id: int
    username: str
    role: str


class Credentials(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class BorrowCreate(BaseModel):
    asset_id: Optional[int] = None
    borrow_date: Optional[date] = None
    return_date: Optional[date] = None


class BorrowDecision(BaseModel):
    status: Optional[str] = None


class AssetRead(BaseModel):
    id: int
    asset_name: str
    status: str

    model_config = ConfigDict(from_attributes=True)


class BorrowRecord(BaseModel):
    id: int
    asset_id: int
    asset_name: str
    user_id: int
    username: str
    lender_id: Optional[int] = None
    lender_username: Optional[str] = None
    borrow_date: date
    return_date: date
    status: str
    returned: bool


class ActiveRequestCheck(BaseModel):
    hasActiveRequest: bool
    requests: List[BorrowRecord]


class DashboardCounts(BaseModel):
    Available: int
    Borrowed: int
    Disabled: int
