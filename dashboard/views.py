"""
Dashboard views. Turn the admin aggregates into display-ready tables.

Each builder fetches one aggregate through AdminAnalyticsClient and applies
the shared metric helpers, so rounding and duration formatting are identical
on every chart. Fetch failures propagate as DashboardFetchError; an empty
response yields a view with ``empty=True`` instead.
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from config import Settings
from dashboard.client import (
    AdminAnalyticsClient,
    CategoryMetrics,
    ProductMetrics,
    UserInteraction,
)
from dashboard.metrics import (
    BreakdownRow,
    average,
    breakdown,
    format_currency,
    format_duration,
    format_percentage,
    funnel_rates,
)
from dashboard.ranking import SortState, sort_rows

TOP_N = 5
TOP_CATEGORIES = 3


class View(BaseModel):
    empty: bool = False


class ProductRow(BaseModel):
    product_id: str
    product_name: str
    clicks: int
    views: int
    add_to_carts: int
    purchases: int
    wishlist_adds: int
    total_revenue: float
    avg_time_spent: float
    unique_users: int
    conversion_rate: float
    cart_conversion_rate: float
    revenue_display: str
    avg_time_display: str
    conversion_display: str
    cart_conversion_display: str


class ProductPerformanceView(View):
    sort_column: str
    sort_order: str
    rows: list[ProductRow] = Field(default_factory=list)
    total_clicks: int = 0
    total_add_to_carts: int = 0
    total_purchases: int = 0
    total_revenue: float = 0.0
    total_revenue_display: str = format_currency(0)


class CategoryRow(BaseModel):
    category_id: str
    category_name: str
    views: int
    unique_visitors: int
    avg_time_spent: float
    bounce_rate: float
    avg_time_display: str
    bounce_rate_display: str


class CategoryAnalyticsView(View):
    sort_column: str
    sort_order: str
    rows: list[CategoryRow] = Field(default_factory=list)
    top_categories: list[CategoryRow] = Field(default_factory=list)
    total_views: int = 0
    total_unique_visitors: int = 0
    avg_time_spent: float = 0.0
    avg_time_display: str = format_duration(0)
    avg_bounce_rate: float = 0.0
    avg_bounce_rate_display: str = format_percentage(0)


class TrendPoint(BaseModel):
    day: date
    orders: int
    revenue: float
    revenue_display: str


class OrderFunnelView(View):
    checkout_starts: int = 0
    checkout_completes: int = 0
    purchases: int = 0
    total_revenue: str = format_currency(0)
    avg_order_value: str = format_currency(0)
    checkout_conversion_rate: float = 0.0
    purchase_conversion_rate: float = 0.0
    checkout_conversion_display: str = format_percentage(0)
    purchase_conversion_display: str = format_percentage(0)
    daily_trends: list[TrendPoint] = Field(default_factory=list)


class BreakdownEntry(BaseModel):
    label: str
    count: int
    percentage: int

    @classmethod
    def of(cls, row: BreakdownRow) -> "BreakdownEntry":
        return cls(label=row.label, count=row.count, percentage=row.percentage)


class OverviewView(View):
    total_sessions: int = 0
    unique_users: int = 0
    total_page_views: int = 0
    total_events: int = 0
    avg_session_duration: str = format_duration(0)
    top_products: list[BreakdownEntry] = Field(default_factory=list)
    top_categories: list[BreakdownEntry] = Field(default_factory=list)
    devices: list[BreakdownEntry] = Field(default_factory=list)
    traffic_sources: list[BreakdownEntry] = Field(default_factory=list)


class InteractionRow(BaseModel):
    id: str
    type: str
    session_id: str | None = None
    product_id: str | None = None
    category_id: str | None = None
    timestamp: str | None = None
    device_type: str | None = None
    page_url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class InteractionLogView(View):
    page: int = 1
    pages: int = 0
    total: int = 0
    limit: int = 20
    rows: list[InteractionRow] = Field(default_factory=list)


class DashboardService:
    """Builds the admin views from one AdminAnalyticsClient."""

    def __init__(self, client: AdminAnalyticsClient, settings: Settings | None = None):
        self.client = client
        self.settings = settings or client.settings

    def product_performance(
        self, sort: SortState | None = None, days: int | None = None
    ) -> ProductPerformanceView:
        sort = sort or SortState("clicks")
        products = self.client.product_performance(days)
        rows = [_product_row(p) for p in products]
        total_revenue = sum(r.total_revenue for r in rows)
        return ProductPerformanceView(
            empty=not rows,
            sort_column=sort.column,
            sort_order=sort.order,
            rows=sort_rows(rows, sort),
            total_clicks=sum(r.clicks for r in rows),
            total_add_to_carts=sum(r.add_to_carts for r in rows),
            total_purchases=sum(r.purchases for r in rows),
            total_revenue=total_revenue,
            total_revenue_display=format_currency(total_revenue),
        )

    def category_analytics(
        self, sort: SortState | None = None, days: int | None = None
    ) -> CategoryAnalyticsView:
        sort = sort or SortState("views")
        categories = self.client.category_analytics(days)
        rows = sort_rows([_category_row(c) for c in categories], sort)
        avg_time = average(r.avg_time_spent for r in rows)
        avg_bounce = average(r.bounce_rate for r in rows)
        return CategoryAnalyticsView(
            empty=not rows,
            sort_column=sort.column,
            sort_order=sort.order,
            rows=rows,
            top_categories=rows[:TOP_CATEGORIES],
            total_views=sum(r.views for r in rows),
            total_unique_visitors=sum(r.unique_visitors for r in rows),
            avg_time_spent=avg_time,
            avg_time_display=format_duration(avg_time),
            avg_bounce_rate=avg_bounce,
            avg_bounce_rate_display=format_percentage(avg_bounce),
        )

    def order_funnel(self, days: int | None = None) -> OrderFunnelView:
        analytics = self.client.order_analytics(days)
        if analytics is None:
            return OrderFunnelView(empty=True)

        m = analytics.metrics
        # Rates are recomputed from the counts rather than trusted from the server.
        rates = funnel_rates(m.checkout_starts, m.checkout_completes, m.purchases)
        trends = [
            TrendPoint(
                day=date(t.date.year, t.date.month, t.date.day),
                orders=t.orders,
                revenue=t.revenue,
                revenue_display=format_currency(t.revenue),
            )
            for t in analytics.daily_trends
        ]
        trends.sort(key=lambda t: t.day)
        return OrderFunnelView(
            empty=not (m.checkout_starts or m.purchases or trends),
            checkout_starts=m.checkout_starts,
            checkout_completes=m.checkout_completes,
            purchases=m.purchases,
            total_revenue=format_currency(m.total_revenue),
            avg_order_value=format_currency(m.avg_order_value),
            checkout_conversion_rate=rates.checkout_conversion_rate,
            purchase_conversion_rate=rates.purchase_conversion_rate,
            checkout_conversion_display=format_percentage(rates.checkout_conversion_rate),
            purchase_conversion_display=format_percentage(rates.purchase_conversion_rate),
            daily_trends=trends,
        )

    def overview(self, days: int | None = None) -> OverviewView:
        data = self.client.overview(days)
        totals = data.overview

        def entries(items, label_attr, count_attr="count", limit=None):
            return [BreakdownEntry.of(r) for r in breakdown(items, label_attr, count_attr, limit=limit)]

        return OverviewView(
            empty=not (totals.total_events or totals.total_sessions),
            total_sessions=totals.total_sessions,
            unique_users=totals.unique_users,
            total_page_views=totals.total_page_views,
            total_events=totals.total_events,
            avg_session_duration=format_duration(totals.avg_session_duration),
            top_products=entries(data.top_products, "product_name", "clicks", limit=TOP_N),
            top_categories=entries(data.top_categories, "category_name", "views", limit=TOP_N),
            devices=entries(data.device_breakdown, "device_type"),
            traffic_sources=entries(data.traffic_sources, "source", limit=TOP_N),
        )

    def interactions(
        self,
        page: int = 1,
        limit: int | None = None,
        event_type: str | None = None,
        product_id: str | None = None,
        category_id: str | None = None,
        days: int | None = None,
    ) -> InteractionLogView:
        result = self.client.user_interactions(
            days=days,
            page=page,
            limit=limit,
            event_type=event_type,
            product_id=product_id,
            category_id=category_id,
        )
        rows = [_interaction_row(i) for i in result.interactions]
        p = result.pagination
        return InteractionLogView(
            empty=not rows,
            page=p.page,
            pages=p.pages,
            total=p.total,
            limit=p.limit,
            rows=rows,
        )

    def generate_sample_data(self) -> str:
        return self.client.generate_sample_data() or "Sample data generated"

    def clear_data(self) -> str:
        return self.client.clear_data() or "Analytics data cleared"


def _product_row(p: ProductMetrics) -> ProductRow:
    return ProductRow(
        product_id=p.id,
        product_name=p.product_name or f"Product {p.id[-6:]}",
        clicks=p.clicks,
        views=p.views,
        add_to_carts=p.add_to_carts,
        purchases=p.purchases,
        wishlist_adds=p.wishlist_adds,
        total_revenue=p.total_revenue,
        avg_time_spent=p.avg_time_spent,
        unique_users=p.unique_users,
        conversion_rate=p.conversion_rate,
        cart_conversion_rate=p.cart_conversion_rate,
        revenue_display=format_currency(p.total_revenue),
        avg_time_display=format_duration(p.avg_time_spent),
        conversion_display=format_percentage(p.conversion_rate),
        cart_conversion_display=format_percentage(p.cart_conversion_rate),
    )


def _category_row(c: CategoryMetrics) -> CategoryRow:
    return CategoryRow(
        category_id=c.id,
        category_name=c.category_name or f"Category {c.id[-6:]}",
        views=c.views,
        unique_visitors=c.unique_visitors,
        avg_time_spent=c.avg_time_spent,
        bounce_rate=c.bounce_rate,
        avg_time_display=format_duration(c.avg_time_spent),
        bounce_rate_display=format_percentage(c.bounce_rate),
    )


def _interaction_row(i: UserInteraction) -> InteractionRow:
    meta = i.event.metadata
    ts = i.event.timestamp or i.created_at
    return InteractionRow(
        id=i.id,
        type=i.event.type,
        session_id=i.session_id,
        product_id=i.event.product_id,
        category_id=i.event.category_id,
        timestamp=ts.isoformat() if ts else None,
        device_type=meta.get("deviceType"),
        page_url=meta.get("pageUrl"),
        metadata=meta,
    )
