"""REST endpoints serving the admin dashboard views."""

from typing import Literal

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_dashboard
from dashboard.ranking import SortState
from dashboard.views import (
    CategoryAnalyticsView,
    DashboardService,
    InteractionLogView,
    OrderFunnelView,
    OverviewView,
    ProductPerformanceView,
)

router = APIRouter(prefix="/dashboard")

Order = Literal["asc", "desc"]


@router.get("/overview", response_model=OverviewView)
def get_overview(
    days: int | None = Query(default=None, ge=1, le=365),
    service: DashboardService = Depends(get_dashboard),
):
    """Session totals with device, traffic and top-5 breakdowns."""
    return service.overview(days)


@router.get("/products", response_model=ProductPerformanceView)
def get_products(
    sort: str = Query(default="clicks"),
    order: Order = Query(default="desc"),
    days: int | None = Query(default=None, ge=1, le=365),
    service: DashboardService = Depends(get_dashboard),
):
    return service.product_performance(SortState(sort, descending=order == "desc"), days)


@router.get("/categories", response_model=CategoryAnalyticsView)
def get_categories(
    sort: str = Query(default="views"),
    order: Order = Query(default="desc"),
    days: int | None = Query(default=None, ge=1, le=365),
    service: DashboardService = Depends(get_dashboard),
):
    return service.category_analytics(SortState(sort, descending=order == "desc"), days)


@router.get("/orders", response_model=OrderFunnelView)
def get_orders(
    days: int | None = Query(default=None, ge=1, le=365),
    service: DashboardService = Depends(get_dashboard),
):
    """Checkout funnel rates and daily order trend."""
    return service.order_funnel(days)


@router.get("/interactions", response_model=InteractionLogView)
def get_interactions(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
    event_type: str | None = Query(default=None, alias="eventType"),
    product_id: str | None = Query(default=None, alias="productId"),
    category_id: str | None = Query(default=None, alias="categoryId"),
    days: int | None = Query(default=None, ge=1, le=365),
    service: DashboardService = Depends(get_dashboard),
):
    return service.interactions(
        page=page,
        limit=limit,
        event_type=event_type,
        product_id=product_id,
        category_id=category_id,
        days=days,
    )


@router.post("/sample-data")
def generate_sample_data(service: DashboardService = Depends(get_dashboard)):
    return {"status": "ok", "message": service.generate_sample_data()}


@router.delete("/data")
def clear_data(service: DashboardService = Depends(get_dashboard)):
    return {"status": "ok", "message": service.clear_data()}
