"""FastAPI application factory with lifespan management."""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, configure_logging
from dashboard.client import AdminAnalyticsClient, DashboardFetchError
from dashboard.views import DashboardService
from api.routers import dashboard, health


def create_app(
    settings: Settings | None = None,
    client: AdminAnalyticsClient | None = None,
) -> FastAPI:
    settings = settings or Settings()
    log = configure_logging("dashboard-api", settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        admin = client or AdminAnalyticsClient(settings)
        app.state.settings = settings
        app.state.dashboard = DashboardService(admin, settings)
        app.state.start_time = time.time()
        log.info("dashboard_api_started", api_url=settings.api_url)

        yield

        # Injected clients belong to the caller.
        if client is None:
            admin.close()

    app = FastAPI(
        title="Storefront Analytics Dashboard API",
        version="1.0.0",
        description="Derived admin metrics over the analytics collector",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DashboardFetchError)
    async def upstream_failed(request: Request, exc: DashboardFetchError):
        # Distinct from an empty view: the operator must see that the fetch failed.
        return JSONResponse(
            status_code=502,
            content={"status": "error", "message": exc.message, "upstream_status": exc.status_code},
        )

    app.include_router(health.router)
    app.include_router(dashboard.router)

    return app


def serve():
    """Run the dashboard API with uvicorn on the configured host and port."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    serve()
