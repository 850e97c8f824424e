"""Print contribution statistics for a GitHub user.

Usage:
    export GITHUB_TOKEN=ghp_...
    python -m contribution_aggregator.cli octocat --month 2026-01
"""

import argparse
import asyncio
import logging
import sys
from datetime import UTC
from datetime import datetime

from contribution_aggregator.api.schemas.contributions import ContributionStats
from contribution_aggregator.core.errors import AggregationTimeoutError
from contribution_aggregator.core.errors import GitHubAPIError
from contribution_aggregator.core.observability import configure_logging
from contribution_aggregator.core.outcome import render
from contribution_aggregator.services.contributions_service import (
    aggregate_contributions,
)
from contribution_aggregator.services.stats_service import NO_LINES_OF_CODE
from contribution_aggregator.services.stats_service import calculate_stats
from contribution_aggregator.services.stats_service import estimate_lines_of_code
from contribution_aggregator.services.stats_service import format_contribution_count
from contribution_aggregator.services.stats_service import summarize_month
from contribution_aggregator.settings import Settings


logger = logging.getLogger(__name__)


def parse_month(raw_value: str) -> tuple[int, int]:
    try:
        parsed = datetime.strptime(raw_value, "%Y-%m")
    except ValueError as exc:
        raise argparse.ArgumentTypeError("month must look like YYYY-MM") from exc
    return parsed.year, parsed.month


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "username",
        nargs="?",
        help="GitHub login (defaults to GITHUB_USERNAME)",
    )
    parser.add_argument(
        "--month",
        type=parse_month,
        help="also print a day-by-day breakdown of YYYY-MM",
    )
    return parser


def print_report(
    stats: ContributionStats,
    lines_of_code: str,
    month_summary: dict[str, object] | None,
) -> None:
    print(f"Total commits:      {stats.total_commits}")
    print(f"Pull requests:      {stats.total_pull_requests}")
    print(f"Active repos:       {stats.active_repositories}")
    print(f"Current streak:     {stats.current_streak} days")
    print(f"Longest streak:     {stats.longest_streak} days")
    print(f"Most active day:    {stats.most_active_day}")
    print(f"Top languages:      {stats.top_languages}")
    print(f"Lines of code:      {lines_of_code}")

    if month_summary is None:
        return

    print()
    for row in month_summary["days"]:
        print(
            f"  {row['weekday']:<10} {row['date']} | "
            f"{format_contribution_count(row['count']):<17} | level {row['level']}"
        )
    print(f"Month total: {format_contribution_count(month_summary['total'])}")
    for label, count in month_summary["levels"].items():
        if count:
            print(f"  {label}: {count} days")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    configure_logging(settings)

    username = args.username or settings.github_username
    if not username:
        print("A username or GITHUB_USERNAME is required", file=sys.stderr)
        return 2

    try:
        contributions = asyncio.run(aggregate_contributions(username, settings))
    except (GitHubAPIError, AggregationTimeoutError) as exc:
        logger.error("Failed to fetch contributions for %s: %s", username, exc)
        return 1

    stats = calculate_stats(
        contributions.two_year_stats,
        contributions.recent_calendar,
        languages=contributions.top_languages,
        today=datetime.now(UTC).date(),
    )

    month_summary = None
    if args.month is not None:
        year, month = args.month
        month_summary = summarize_month(contributions.two_year_stats, year, month)

    lines_of_code = render(
        estimate_lines_of_code(contributions.language_bytes), NO_LINES_OF_CODE
    )
    print_report(stats, lines_of_code, month_summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
