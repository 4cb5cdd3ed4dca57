"""Admin analytics API client and the pre-aggregated metric rows it returns."""

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from config import Settings, configure_logging


class DashboardFetchError(Exception):
    """An admin aggregate could not be fetched. Shown as an error, never as zeros."""

    def __init__(self, message: str, status_code: int | None = None, endpoint: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint


class MetricRow(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ─── Aggregated rows (read-only) ────────────────────────────────────


class ProductMetrics(MetricRow):
    id: str = Field(alias="_id")
    product_name: str | None = None
    clicks: int = 0
    views: int = 0
    add_to_carts: int = 0
    purchases: int = 0
    wishlist_adds: int = 0
    total_revenue: float = 0.0
    total_time_spent: float = 0.0
    avg_time_spent: float = 0.0
    unique_users: int = 0
    conversion_rate: float = 0.0
    cart_conversion_rate: float = 0.0


class CategoryMetrics(MetricRow):
    id: str = Field(alias="_id")
    category_name: str | None = None
    views: int = 0
    unique_visitors: int = 0
    avg_time_spent: float = 0.0
    bounce_rate: float = 0.0


class OrderMetrics(MetricRow):
    checkout_starts: int = 0
    checkout_completes: int = 0
    purchases: int = 0
    total_revenue: float = 0.0
    avg_order_value: float = 0.0
    checkout_conversion_rate: float = 0.0
    purchase_conversion_rate: float = 0.0


class TrendDate(MetricRow):
    year: int
    month: int
    day: int


class DailyTrend(MetricRow):
    date: TrendDate = Field(alias="_id")
    orders: int = 0
    revenue: float = 0.0


class OrderAnalytics(MetricRow):
    metrics: OrderMetrics = Field(default_factory=OrderMetrics)
    daily_trends: list[DailyTrend] = Field(default_factory=list)


class OverviewTotals(MetricRow):
    total_sessions: int = 0
    unique_users: int = 0
    total_page_views: int = 0
    total_events: int = 0
    avg_session_duration: float = 0.0


class TopProduct(MetricRow):
    id: str = Field(alias="_id")
    product_name: str | None = None
    clicks: int = 0


class TopCategory(MetricRow):
    id: str = Field(alias="_id")
    category_name: str | None = None
    views: int = 0


class DeviceCount(MetricRow):
    device_type: str | None = None
    count: int = 0


class SourceCount(MetricRow):
    source: str | None = Field(default=None, alias="_id")
    count: int = 0


class AnalyticsOverview(MetricRow):
    overview: OverviewTotals = Field(default_factory=OverviewTotals)
    top_products: list[TopProduct] = Field(default_factory=list)
    top_categories: list[TopCategory] = Field(default_factory=list)
    device_breakdown: list[DeviceCount] = Field(default_factory=list)
    traffic_sources: list[SourceCount] = Field(default_factory=list)


class InteractionEvent(MetricRow):
    type: str
    product_id: str | None = None
    category_id: str | None = None
    timestamp: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class UserInteraction(MetricRow):
    id: str = Field(alias="_id")
    user_id: str | None = None
    session_id: str | None = None
    event: InteractionEvent
    user_agent: str | None = None
    ip_address: str | None = None
    created_at: datetime | None = None


class Pagination(MetricRow):
    page: int = 1
    limit: int = 20
    total: int = 0
    pages: int = 0


class InteractionPage(MetricRow):
    interactions: list[UserInteraction] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


# ─── Client ─────────────────────────────────────────────────────────


class AdminAnalyticsClient:
    """
    Reads pre-aggregated metrics from ``/analytics/admin/*``. Responses are
    enveloped as ``{success, message, data}``; any transport failure, non-2xx
    status or unexpected body raises DashboardFetchError.
    """

    def __init__(
        self,
        settings: Settings,
        client: httpx.Client | None = None,
        token: str | None = None,
        log=None,
    ):
        self.settings = settings
        self.log = log or configure_logging("admin-client", settings.log_level)
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.Client(
            base_url=settings.api_url,
            timeout=settings.request_timeout_sec,
            headers=headers,
        )

    def date_range(self, days: int | None = None, now: datetime | None = None) -> dict[str, str]:
        """``startDate``/``endDate`` covering the last ``days`` days, ISO formatted."""
        end = now or datetime.now(timezone.utc)
        start = end - timedelta(days=days or self.settings.dashboard_range_days)
        return {"startDate": _iso(start), "endDate": _iso(end)}

    def overview(self, days: int | None = None) -> AnalyticsOverview:
        data = self._get("/analytics/admin/overview", self.date_range(days))
        return self._parse(AnalyticsOverview, data, "/analytics/admin/overview")

    def product_performance(self, days: int | None = None) -> list[ProductMetrics]:
        data = self._get("/analytics/admin/product-performance", self.date_range(days))
        rows = (data or {}).get("products", [])
        return [self._parse(ProductMetrics, row, "/analytics/admin/product-performance") for row in rows]

    def category_analytics(self, days: int | None = None) -> list[CategoryMetrics]:
        data = self._get("/analytics/admin/category-analytics", self.date_range(days))
        rows = (data or {}).get("categories", [])
        return [self._parse(CategoryMetrics, row, "/analytics/admin/category-analytics") for row in rows]

    def order_analytics(self, days: int | None = None) -> OrderAnalytics | None:
        data = self._get("/analytics/admin/order-analytics", self.date_range(days))
        if not data:
            return None
        return self._parse(OrderAnalytics, data, "/analytics/admin/order-analytics")

    def user_interactions(
        self,
        days: int | None = None,
        page: int = 1,
        limit: int | None = None,
        event_type: str | None = None,
        product_id: str | None = None,
        category_id: str | None = None,
    ) -> InteractionPage:
        params = {
            **self.date_range(days),
            "page": str(page),
            "limit": str(limit or self.settings.interactions_page_size),
        }
        # Empty filters are left off the query entirely.
        for name, value in (("eventType", event_type), ("productId", product_id), ("categoryId", category_id)):
            if value:
                params[name] = value
        data = self._get("/analytics/admin/user-interactions", params)
        return self._parse(InteractionPage, data or {}, "/analytics/admin/user-interactions")

    def generate_sample_data(self) -> str | None:
        return self._request("POST", "/analytics/admin/generate-sample-data").get("message")

    def clear_data(self) -> str | None:
        return self._request("DELETE", "/analytics/admin/clear-data").get("message")

    def close(self):
        self._client.close()

    # ─── Internals ──────────────────────────────────────────────────

    def _get(self, path: str, params: dict[str, str]) -> Any:
        return self._request("GET", path, params=params).get("data")

    def _request(self, method: str, path: str, params: dict[str, str] | None = None) -> dict:
        try:
            response = self._client.request(method, path, params=params)
        except httpx.HTTPError as e:
            self.log.error("dashboard_fetch_failed", endpoint=path, error=str(e))
            raise DashboardFetchError(f"Could not reach analytics API: {e}", endpoint=path) from e

        body = _json_body(response)
        if response.is_error or body.get("success") is False:
            message = _error_message(body) or f"Request failed with status {response.status_code}"
            self.log.error(
                "dashboard_fetch_failed",
                endpoint=path,
                status_code=response.status_code,
                error=message,
            )
            raise DashboardFetchError(message, status_code=response.status_code, endpoint=path)
        return body

    def _parse(self, model: type[MetricRow], data: Any, path: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            self.log.error("dashboard_payload_invalid", endpoint=path, errors=e.error_count())
            raise DashboardFetchError(f"Unexpected response from {path}", endpoint=path) from e


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _json_body(response: httpx.Response) -> dict:
    if response.status_code == 204 or not response.content:
        return {}
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_message(body: dict) -> str | None:
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return body.get("message") if body.get("success") is False else None
