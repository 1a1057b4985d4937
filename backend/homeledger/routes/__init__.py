from fastapi import APIRouter
from homeledger.routes import accounts, categories, categorize, sync, transactions

api_router = APIRouter()

api_router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_router.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
api_router.include_router(sync.router, prefix="/sync", tags=["sync"])
api_router.include_router(categorize.router, prefix="/categorize", tags=["categorize"])
