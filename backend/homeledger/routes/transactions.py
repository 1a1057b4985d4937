from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
import logging

from homeledger.database import get_db
from homeledger.models import Category, Transaction
from homeledger.schemas import TransactionCategoryUpdate, TransactionResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[TransactionResponse])
def list_transactions(
    account_id: Optional[UUID] = None,
    uncategorized: bool = False,
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """List transactions, newest first."""
    query = db.query(Transaction)
    if account_id:
        query = query.filter(Transaction.account_id == account_id)
    if uncategorized:
        query = query.filter(
            Transaction.category_id.is_(None),
            or_(Transaction.user_override.is_(None), Transaction.user_override.is_(False)),
        )
    return query.order_by(Transaction.posted_date.desc(), Transaction.created_at.desc()).limit(limit).all()


@router.patch("/{transaction_id}/category", response_model=TransactionResponse)
def set_transaction_category(
    transaction_id: UUID,
    update: TransactionCategoryUpdate,
    db: Session = Depends(get_db)
):
    """
    Categorize a transaction by hand.

    The row is marked as a user override so later categorization runs leave it alone.
    """
    transaction = db.query(Transaction).filter(Transaction.id == transaction_id).first()
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")

    category = db.query(Category).filter(Category.id == update.category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    transaction.category_id = category.id
    transaction.category_name = category.name
    transaction.user_override = True

    db.commit()
    db.refresh(transaction)
    return transaction
