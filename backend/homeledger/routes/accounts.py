from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
import logging

from homeledger.database import get_db
from homeledger.models import CashAccount
from homeledger.schemas import CashAccountResponse, CashAccountUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[CashAccountResponse])
def list_accounts(
    include_inactive: bool = False,
    db: Session = Depends(get_db)
):
    """List synced cash accounts in display order."""
    query = db.query(CashAccount)
    if not include_inactive:
        query = query.filter(CashAccount.is_active == True)  # noqa: E712
    return query.order_by(CashAccount.display_order, CashAccount.owner, CashAccount.name).all()


@router.patch("/{account_id}", response_model=CashAccountResponse)
def update_account(
    account_id: UUID,
    updates: CashAccountUpdate,
    db: Session = Depends(get_db)
):
    """Update the household-owned fields of an account. Sync never overwrites these."""
    account = db.query(CashAccount).filter(CashAccount.id == account_id).first()
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")

    update_data = updates.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in update_data.items():
        setattr(account, field, value)

    db.commit()
    db.refresh(account)
    logger.info(f"Updated account {account.simplefin_id}: {sorted(update_data)}")
    return account
