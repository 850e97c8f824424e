from fastapi import FastAPI

from contribution_aggregator.api.routes.contributions import router
from contribution_aggregator.core.cache import TTLCache
from contribution_aggregator.core.middleware import ContributionsRateLimitMiddleware
from contribution_aggregator.core.observability import configure_logging
from contribution_aggregator.core.observability import init_sentry
from contribution_aggregator.settings import Settings


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the API application from settings."""

    if app_settings is None:
        app_settings = Settings()

    configure_logging(app_settings)
    init_sentry(app_settings)

    app = FastAPI(title="Contribution Aggregator")
    app.state.settings = app_settings
    app.state.contributions_cache = TTLCache(app_settings.cache_ttl_seconds)
    app.add_middleware(
        ContributionsRateLimitMiddleware,
        requests_per_window=app_settings.rate_limit_per_minute,
        window_seconds=app_settings.rate_limit_window_seconds,
    )
    app.include_router(router)
    return app


app = create_app()
