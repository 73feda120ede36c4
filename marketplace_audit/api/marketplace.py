"""
Marketplace dashboard endpoints

Read-only views over synced bol.com data. All routes need the dashboard
bearer token.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from marketplace_audit.api.deps import require_user
from marketplace_audit.models.base import get_db
from marketplace_audit.models.enums import Category
from marketplace_audit.services.marketplace_report_service import MarketplaceReportService

router = APIRouter(prefix="/marketplace", tags=["marketplace"], dependencies=[Depends(require_user)])


def get_report_service(db: Session = Depends(get_db)) -> MarketplaceReportService:
    return MarketplaceReportService(db)


def _known_customer(service: MarketplaceReportService, customer_id: int) -> None:
    if service.store.get_customer(customer_id) is None:
        raise HTTPException(status_code=404, detail=f"Customer {customer_id} not found")


@router.get("/customers")
async def list_customers(service: MarketplaceReportService = Depends(get_report_service)):
    """Marketplace customers (credentials redacted)"""
    customers = service.list_customers()
    return {"success": True, "data": customers, "count": len(customers)}


@router.get("/customers/{customer_id}/summary")
async def get_summary(customer_id: int, service: MarketplaceReportService = Depends(get_report_service)):
    """
    Seller health summary

    Latest analysis per category and the weighted overall score (null when
    nothing has been analysed yet).
    """
    _known_customer(service, customer_id)
    return {"success": True, "data": service.get_summary(customer_id)}


@router.get("/customers/{customer_id}/analyses")
async def get_analyses(
    customer_id: int,
    category: Optional[str] = Query(None, description="content, inventory, orders, advertising, returns, performance"),
    limit: int = Query(50, ge=1, le=500),
    service: MarketplaceReportService = Depends(get_report_service),
):
    _known_customer(service, customer_id)
    if category and category not in {c.value for c in Category}:
        raise HTTPException(status_code=400, detail=f"Unknown category: {category}")
    analyses = service.get_analyses(customer_id, category, limit)
    return {"success": True, "data": analyses, "count": len(analyses)}


@router.get("/customers/{customer_id}/campaigns")
async def get_campaigns(
    customer_id: int,
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    service: MarketplaceReportService = Depends(get_report_service),
):
    """
    Campaign + keyword performance

    Without from/to: latest row per campaign and keyword.
    With from/to: metrics aggregated over the period.
    """
    _known_customer(service, customer_id)
    if (date_from is None) != (date_to is None):
        raise HTTPException(status_code=400, detail="Provide both 'from' and 'to', or neither")
    return {"success": True, "data": service.get_campaigns(customer_id, date_from, date_to)}


@router.get("/customers/{customer_id}/rankings")
async def get_rankings(customer_id: int, service: MarketplaceReportService = Depends(get_report_service)):
    """Search / browse rank trends over the last 8 weeks"""
    _known_customer(service, customer_id)
    rankings = service.get_rankings(customer_id)
    return {"success": True, "data": rankings, "count": len(rankings)}


@router.get("/customers/{customer_id}/competitors")
async def get_competitors(customer_id: int, service: MarketplaceReportService = Depends(get_report_service)):
    _known_customer(service, customer_id)
    competitors = service.get_competitors(customer_id)
    return {"success": True, "data": competitors, "count": len(competitors)}


@router.get("/customers/{customer_id}/sync-runs")
async def get_sync_runs(
    customer_id: int,
    limit: int = Query(20, ge=1, le=200),
    service: MarketplaceReportService = Depends(get_report_service),
):
    _known_customer(service, customer_id)
    runs = service.get_sync_runs(customer_id, limit)
    return {"success": True, "data": runs, "count": len(runs)}
