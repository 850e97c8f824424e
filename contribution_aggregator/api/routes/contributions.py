import logging
from datetime import UTC
from datetime import date
from datetime import datetime

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Request

from contribution_aggregator.api.schemas.contributions import ContributionReport
from contribution_aggregator.api.schemas.contributions import TwoYearContributions
from contribution_aggregator.core.cache import TTLCache
from contribution_aggregator.core.errors import AggregationTimeoutError
from contribution_aggregator.core.errors import AuthenticationError
from contribution_aggregator.core.errors import GitHubAPIError
from contribution_aggregator.core.outcome import render
from contribution_aggregator.services.contributions_service import (
    aggregate_contributions,
)
from contribution_aggregator.services.stats_service import NO_LINES_OF_CODE
from contribution_aggregator.services.stats_service import calculate_stats
from contribution_aggregator.services.stats_service import estimate_lines_of_code
from contribution_aggregator.settings import Settings


logger = logging.getLogger(__name__)

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache(request: Request) -> TTLCache[TwoYearContributions]:
    return request.app.state.contributions_cache


def get_today() -> date:
    return datetime.now(UTC).date()


@router.get("/health/live")
def health_live() -> dict[str, str]:
    """Return liveness probe response for health checks."""

    return {"status": "ok"}


async def load_contributions(
    username: str,
    settings: Settings = Depends(get_settings),
    cache: TTLCache[TwoYearContributions] = Depends(get_cache),
    today: date = Depends(get_today),
) -> TwoYearContributions:
    """Return cached contributions for a user, aggregating them on a miss.

    Entries are keyed by UTC day so a new day never reuses a calendar that
    cannot contain it.
    """

    username = username.strip().lower()
    if not username:
        raise HTTPException(status_code=400, detail="username cannot be empty")

    key = f"{username}:{today.isoformat()}"
    cached = cache.get(key)
    if cached is not None:
        return cached

    try:
        result = await aggregate_contributions(username, settings)
    except AuthenticationError as exc:
        logger.error("GitHub credential problem: %s", exc)
        raise HTTPException(
            status_code=503, detail="GitHub token is missing or invalid"
        ) from exc
    except AggregationTimeoutError as exc:
        raise HTTPException(
            status_code=504, detail="GitHub aggregation timed out"
        ) from exc
    except GitHubAPIError as exc:
        logger.error("GitHub aggregation for %s failed: %s", username, exc)
        raise HTTPException(
            status_code=502, detail="GitHub API request failed"
        ) from exc

    cache.set(key, result)
    return result


@router.get(
    "/contributions/{username}",
    response_model=TwoYearContributions,
)
async def get_contributions(
    contributions: TwoYearContributions = Depends(load_contributions),
) -> TwoYearContributions:
    """Return the merged multi-year calendar and the current-year calendar."""

    return contributions


@router.get(
    "/contributions/{username}/stats",
    response_model=ContributionReport,
)
async def get_contribution_stats(
    contributions: TwoYearContributions = Depends(load_contributions),
    today: date = Depends(get_today),
) -> ContributionReport:
    """Return statistics derived from the user's contributions."""

    stats = calculate_stats(
        contributions.two_year_stats,
        contributions.recent_calendar,
        languages=contributions.top_languages,
        today=today,
    )
    return ContributionReport(
        **stats.model_dump(),
        total_lines_of_code=render(
            estimate_lines_of_code(contributions.language_bytes), NO_LINES_OF_CODE
        ),
    )
