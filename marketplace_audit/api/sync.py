"""
Marketplace sync trigger endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketplace_audit.api.deps import require_system, require_user
from marketplace_audit.connectors.base_connector import MarketplaceAuthError
from marketplace_audit.models.base import get_db
from marketplace_audit.models.enums import SyncType
from marketplace_audit.services.data_sync_service import (
    CustomerInactiveError,
    CustomerNotFoundError,
    MarketplaceSyncService,
)
from marketplace_audit.utils.logger import log

router = APIRouter(prefix="/sync", tags=["sync"])


class SyncTriggerRequest(BaseModel):
    customer_id: int = Field(..., alias="customerId")
    sync_type: str = Field(SyncType.MAIN.value, alias="syncType")

    class Config:
        populate_by_name = True


class ScheduledSyncRequest(BaseModel):
    sync_type: str = Field(SyncType.MAIN.value, alias="syncType")

    class Config:
        populate_by_name = True


def parse_sync_type(value: str) -> SyncType:
    try:
        return SyncType(value)
    except ValueError:
        valid = ", ".join(t.value for t in SyncType)
        raise HTTPException(status_code=400, detail=f"Invalid syncType '{value}'. Valid options: {valid}")


def get_sync_service(db: Session = Depends(get_db)) -> MarketplaceSyncService:
    return MarketplaceSyncService(db)


@router.post("/trigger")
async def trigger_sync(
    request: SyncTriggerRequest,
    _user: str = Depends(require_user),
    service: MarketplaceSyncService = Depends(get_sync_service),
):
    """
    Run one sync type for one customer and return the per-phase report.

    Phase failures are reported inside the body (always 200). Only an
    unknown customer (404), an inactive customer or a failed retailer
    token (400) abort the request.
    """
    sync_type = parse_sync_type(request.sync_type)
    try:
        report = await service.run(request.customer_id, sync_type.value)
        return {"success": True, "data": report}
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (CustomerInactiveError, MarketplaceAuthError) as e:
        log.warning(f"Sync trigger for customer {request.customer_id} rejected: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/scheduled")
async def scheduled_sync(
    request: Optional[ScheduledSyncRequest] = None,
    _caller: str = Depends(require_system),
    service: MarketplaceSyncService = Depends(get_sync_service),
):
    """Run a sync type (main by default) for every active customer, one at a time"""
    sync_type = parse_sync_type(request.sync_type if request else SyncType.MAIN.value)
    results = await service.sync_all_customers(sync_type.value)
    return {
        "success": True,
        "sync_type": sync_type.value,
        "customers": len(results),
        "results": results,
    }
