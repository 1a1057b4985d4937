"""
SimpleFIN claim and sync routes.
"""
import logging
from typing import Optional, Union

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from homeledger.database import get_db
from homeledger.db_helpers import get_aggregator_config
from homeledger.schemas import ClaimResponse, ErrorResponse, SyncRequest, SyncResponse, SyncStatusResponse
from homeledger.services.sync_service import MODE_CLAIM, SyncService

logger = logging.getLogger(__name__)
router = APIRouter()


def get_sync_service(db: Session = Depends(get_db)) -> SyncService:
    return SyncService(db)


@router.post(
    "",
    response_model=Union[ClaimResponse, SyncResponse],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def run_sync(
    request: Optional[SyncRequest] = Body(default=None),
    service: SyncService = Depends(get_sync_service),
):
    """
    Claim a setup token, or pull balances/transactions from SimpleFIN.

    - mode "claim": requires setup_token; stores the access URL
    - mode "balances": refreshes account balances
    - mode "transactions": also inserts new transactions from the last `days` days,
      optionally for one `account_id` (SimpleFIN id)
    """
    request = request or SyncRequest()

    if request.mode == MODE_CLAIM:
        service.claim(request.setup_token)
        return ClaimResponse()

    result = service.sync(mode=request.mode, account_id=request.account_id, days=request.days)
    if result.warnings:
        logger.warning(f"Sync finished with {len(result.warnings)} partial write warning(s)")

    return SyncResponse(
        accounts=result.accounts,
        transactions=result.transactions,
        warnings=len(result.warnings),
        logs=result.logs,
    )


@router.get("/status", response_model=SyncStatusResponse)
def get_sync_status(db: Session = Depends(get_db)):
    """Whether SimpleFIN has been connected, and when it last synced."""
    config = get_aggregator_config(db)
    return SyncStatusResponse(
        configured=bool(config and config.access_url),
        last_synced=config.last_synced if config else None,
    )
