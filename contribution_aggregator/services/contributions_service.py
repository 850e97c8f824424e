import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import UTC
from datetime import datetime
from typing import Any

import httpx
import sentry_sdk

from contribution_aggregator.api.schemas.contributions import ContributionCalendar
from contribution_aggregator.api.schemas.contributions import Period
from contribution_aggregator.api.schemas.contributions import RepositoryIdentity
from contribution_aggregator.api.schemas.contributions import TwoYearContributions
from contribution_aggregator.clients.github_client import GitHubClient
from contribution_aggregator.core.errors import AggregationTimeoutError
from contribution_aggregator.core.errors import GitHubAPIError
from contribution_aggregator.core.outcome import render
from contribution_aggregator.services.stats_service import NO_LANGUAGES
from contribution_aggregator.services.stats_service import top_languages
from contribution_aggregator.settings import Settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodSnapshot:
    """Everything fetched for one period."""

    period: Period
    calendar: ContributionCalendar
    repositories: frozenset[RepositoryIdentity]
    commit_count: int
    pull_request_count: int


def partition_periods(now: datetime, years: int = 2) -> list[Period]:
    """Split the last `years` calendar years into periods, oldest first.

    The current period runs from January 1st to `now`.
    """

    if years < 1:
        raise ValueError("years must be at least 1")
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    now = now.astimezone(UTC)
    periods: list[Period] = []
    for year in range(now.year - years + 1, now.year + 1):
        start = datetime(year, 1, 1, tzinfo=UTC)
        if year == now.year:
            end = now
        else:
            end = datetime(year, 12, 31, 23, 59, 59, tzinfo=UTC)
        periods.append(Period(start=start, end=end))
    return periods


async def _gather_all(*aws: Awaitable[Any]) -> list[Any]:
    """Await everything jointly; cancel the rest as soon as one fails."""

    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def fetch_period_snapshot(
    client: GitHubClient, username: str, period: Period
) -> PeriodSnapshot:
    calendar, repositories, commit_count, pull_request_count = await _gather_all(
        client.fetch_contributions_for_period(username, period.start, period.end),
        client.fetch_repositories_with_activity(username, period.start, period.end),
        client.fetch_commit_count(username, period.start, period.end),
        client.fetch_pull_request_count(username, period.start, period.end),
    )
    logger.debug(
        "Fetched %s for %s: %d commits, %d pull requests, %d repositories",
        period.label,
        username,
        commit_count,
        pull_request_count,
        len(repositories),
    )
    return PeriodSnapshot(
        period=period,
        calendar=calendar,
        repositories=frozenset(repositories),
        commit_count=commit_count,
        pull_request_count=pull_request_count,
    )


def merge_period_snapshots(
    snapshots: list[PeriodSnapshot],
) -> tuple[ContributionCalendar, ContributionCalendar, set[RepositoryIdentity]]:
    """Fold period snapshots into one combined calendar.

    Returns the combined calendar, the most recent period's calendar untouched,
    and the union of active repositories. The combined commit, pull request and
    repository counters come from the REST search results, which stay accurate
    across periods where the GraphQL counters do not.
    """

    if not snapshots:
        raise ValueError("at least one period snapshot is required")

    ordered = sorted(snapshots, key=lambda snapshot: snapshot.period.start)

    repositories: set[RepositoryIdentity] = set()
    for snapshot in ordered:
        repositories |= snapshot.repositories

    combined = ContributionCalendar(
        total_contributions=sum(
            snapshot.calendar.total_contributions for snapshot in ordered
        ),
        total_commit_contributions=sum(snapshot.commit_count for snapshot in ordered),
        total_pull_request_contributions=sum(
            snapshot.pull_request_count for snapshot in ordered
        ),
        total_repository_contributions=len(repositories),
        weeks=[week for snapshot in ordered for week in snapshot.calendar.weeks],
    )
    return combined, ordered[-1].calendar, repositories


async def fetch_multi_period_contributions(
    client: GitHubClient, username: str, now: datetime, years: int = 2
) -> TwoYearContributions:
    periods = partition_periods(now, years)
    snapshots = await _gather_all(
        *(fetch_period_snapshot(client, username, period) for period in periods)
    )
    combined, recent, repositories = merge_period_snapshots(list(snapshots))

    tally = await client.fetch_language_bytes(repositories)
    return TwoYearContributions(
        two_year_stats=combined,
        recent_calendar=recent,
        top_languages=render(top_languages(tally), NO_LANGUAGES),
        language_bytes=tally,
    )


async def fetch_current_period_contributions(
    client: GitHubClient, username: str, now: datetime
) -> TwoYearContributions:
    """Fetch only the current year, keeping the GraphQL counters as they are."""

    (period,) = partition_periods(now, years=1)
    calendar = await client.fetch_contributions_for_period(
        username, period.start, period.end
    )
    return TwoYearContributions(
        two_year_stats=calendar,
        recent_calendar=calendar,
        top_languages=NO_LANGUAGES,
    )


async def fetch_two_year_contributions(
    client: GitHubClient,
    username: str,
    now: datetime | None = None,
    years: int = 2,
) -> TwoYearContributions:
    """Fetch the multi-year view, falling back once to the current year only."""

    if now is None:
        now = datetime.now(UTC)

    try:
        return await fetch_multi_period_contributions(client, username, now, years)
    except GitHubAPIError as exc:
        logger.warning(
            "Multi-period fetch for %s failed, using current period only: %s",
            username,
            exc,
        )
        sentry_sdk.capture_exception(exc)

    return await fetch_current_period_contributions(client, username, now)


async def aggregate_contributions(
    username: str,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
    now: datetime | None = None,
) -> TwoYearContributions:
    """Run one aggregation with its own HTTP client and optional deadline."""

    async with httpx.AsyncClient(
        timeout=settings.http_timeout_seconds, transport=transport
    ) as http:
        client = GitHubClient.from_settings(http, settings)
        try:
            async with asyncio.timeout(settings.aggregation_timeout_seconds):
                return await fetch_two_year_contributions(
                    client, username, now=now, years=settings.history_years
                )
        except TimeoutError as exc:
            raise AggregationTimeoutError(
                f"Aggregation for {username} exceeded "
                f"{settings.aggregation_timeout_seconds} seconds"
            ) from exc
