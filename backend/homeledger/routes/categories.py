from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from homeledger.database import get_db
from homeledger.models import Category
from homeledger.schemas import CategoryResponse

router = APIRouter()


@router.get("", response_model=List[CategoryResponse])
def list_categories(db: Session = Depends(get_db)):
    """List the category vocabulary grouped by parent."""
    return db.query(Category).order_by(Category.parent, Category.name).all()
