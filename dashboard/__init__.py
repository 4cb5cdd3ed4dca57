from .client import AdminAnalyticsClient, DashboardFetchError
from .metrics import average, breakdown, format_currency, format_duration, format_percentage, funnel_rates, percentage
from .ranking import SortState, sort_rows
from .views import DashboardService

__all__ = [
    "AdminAnalyticsClient",
    "DashboardFetchError",
    "average",
    "breakdown",
    "format_currency",
    "format_duration",
    "format_percentage",
    "funnel_rates",
    "percentage",
    "SortState",
    "sort_rows",
    "DashboardService",
]
