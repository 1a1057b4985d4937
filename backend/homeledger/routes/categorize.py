"""
AI categorization route.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from homeledger.database import get_db
from homeledger.integrations.oracle import get_default_oracle
from homeledger.schemas import CategorizeResponse, ErrorResponse
from homeledger.services.category_matcher import CategoryMatcher

router = APIRouter()


def get_category_matcher(db: Session = Depends(get_db)) -> CategoryMatcher:
    return CategoryMatcher(db, oracle=get_default_oracle())


@router.post("", response_model=CategorizeResponse, responses={500: {"model": ErrorResponse}})
def categorize_transactions(matcher: CategoryMatcher = Depends(get_category_matcher)):
    """Categorize the next batch of uncategorized transactions."""
    result = matcher.categorize_uncategorized()
    return CategorizeResponse(categorized=result.categorized, logs=result.logs)
