from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional, List
from uuid import UUID

from homeledger.models import ACCOUNT_TYPES, OWNERS
from homeledger.services.sync_service import MAX_LOOKBACK_DAYS


# Sync Schemas
class SyncRequest(BaseModel):
    mode: Literal["claim", "balances", "transactions"] = "balances"
    setup_token: Optional[str] = None
    account_id: Optional[str] = None
    days: Optional[int] = Field(default=30, gt=0, le=MAX_LOOKBACK_DAYS)


class ClaimResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    success: bool = True
    mode: Literal["claim"] = "claim"


class SyncResponse(BaseModel):
    success: bool = True
    accounts: int
    transactions: int
    warnings: int = 0
    logs: List[str] = []


class SyncStatusResponse(BaseModel):
    configured: bool
    last_synced: Optional[datetime] = None


class ErrorResponse(BaseModel):
    error: str
    logs: List[str] = []


# Categorization Schemas
class CategorizeResponse(BaseModel):
    success: bool = True
    categorized: int
    logs: List[str] = []


# Cash Account Schemas
class CashAccountResponse(BaseModel):
    id: UUID
    simplefin_id: str
    name: str
    institution: Optional[str] = None
    currency: str
    balance: Decimal
    balance_date: Optional[datetime] = None
    owner: str
    account_type: str
    display_order: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class CashAccountUpdate(BaseModel):
    """Local-only fields; everything else is owned by sync."""
    name: Optional[str] = Field(default=None, min_length=1)
    owner: Optional[str] = None
    account_type: Optional[str] = None
    display_order: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("owner")
    @classmethod
    def owner_is_known(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in OWNERS:
            raise ValueError(f"must be one of {', '.join(OWNERS)}")
        return value

    @field_validator("account_type")
    @classmethod
    def account_type_is_known(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in ACCOUNT_TYPES:
            raise ValueError(f"must be one of {', '.join(ACCOUNT_TYPES)}")
        return value


# Transaction Schemas
class TransactionResponse(BaseModel):
    id: UUID
    account_id: UUID
    simplefin_id: str
    posted_date: date
    amount: Decimal
    description: str
    memo: Optional[str] = None
    pending: bool
    category_id: Optional[UUID] = None
    category_name: Optional[str] = None
    ai_category: Optional[str] = None
    ai_confidence: Optional[float] = None
    user_override: Optional[bool] = None

    model_config = ConfigDict(from_attributes=True)


class TransactionCategoryUpdate(BaseModel):
    category_id: UUID


# Category Schemas
class CategoryResponse(BaseModel):
    id: UUID
    name: str
    parent: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
