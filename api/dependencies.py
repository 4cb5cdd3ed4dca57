"""FastAPI dependency injection."""

from fastapi import Request

from dashboard.views import DashboardService


def get_dashboard(request: Request) -> DashboardService:
    return request.app.state.dashboard
