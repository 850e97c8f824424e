from datetime import UTC
from datetime import date
from datetime import datetime

from contribution_aggregator.api.schemas.contributions import ContributionCalendar
from contribution_aggregator.api.schemas.contributions import ContributionStats
from contribution_aggregator.api.schemas.contributions import LanguageTally
from contribution_aggregator.core.outcome import Available
from contribution_aggregator.core.outcome import Outcome
from contribution_aggregator.core.outcome import Unavailable
from contribution_aggregator.core.outcome import render


DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)
NO_ACTIVE_DAY = "None"
NO_LANGUAGES = "N/A"
NO_LINES_OF_CODE = "0"
# Rough average size of one line of source code.
BYTES_PER_LINE = 40


def contribution_level(count: int) -> int:
    """Map daily contribution count to a heatmap level in range 0..4."""

    if count <= 0:
        return 0
    if count <= 2:
        return 1
    if count <= 5:
        return 2
    if count <= 9:
        return 3
    return 4


def format_contribution_count(count: int) -> str:
    return "1 contribution" if count == 1 else f"{count} contributions"


def sunday_weekday(day: date) -> int:
    """Return the weekday index with Sunday as 0."""

    return (day.weekday() + 1) % 7


def current_streak(calendar: ContributionCalendar, today: date) -> int:
    """Count consecutive active days ending today.

    Returns 0 when today is not in the calendar yet.
    """

    days = sorted(calendar.days(), key=lambda day: day.date)
    today_index = next(
        (index for index, day in enumerate(days) if day.date == today), None
    )
    if today_index is None:
        return 0

    streak = 0
    for day in reversed(days[: today_index + 1]):
        if day.contribution_count <= 0:
            break
        streak += 1
    return streak


def longest_streak(calendar: ContributionCalendar) -> int:
    max_streak = 0
    running = 0
    for day in calendar.days():
        if day.contribution_count > 0:
            running += 1
        else:
            max_streak = max(max_streak, running)
            running = 0
    return max(max_streak, running)


def most_active_day(calendar: ContributionCalendar) -> Outcome[str]:
    """Return the weekday name with the most contributions in total."""

    totals = [0] * 7
    for day in calendar.days():
        totals[sunday_weekday(day.date)] += day.contribution_count

    best = max(totals)
    if best == 0:
        return Unavailable("no contributions")
    return Available(DAY_NAMES[totals.index(best)])


def top_languages(tally: LanguageTally, limit: int = 3) -> Outcome[str]:
    """Format the largest languages by byte share, e.g. `Python (80.0%)`.

    Languages with equal sizes keep the order of the mapping.
    """

    total = sum(tally.values())
    if not tally or total <= 0:
        return Unavailable("no language data")

    ranked = sorted(tally.items(), key=lambda item: item[1], reverse=True)[:limit]
    return Available(
        ", ".join(f"{name} ({size / total * 100:.1f}%)" for name, size in ranked)
    )


def format_number(value: int) -> str:
    """Abbreviate thousands, e.g. 1534 -> `1.5k`."""

    if value >= 1000:
        return f"{value / 1000:.1f}k"
    return str(value)


def estimate_lines_of_code(tally: LanguageTally) -> Outcome[str]:
    """Estimate lines of code from language byte counts."""

    total_bytes = sum(tally.values())
    if total_bytes <= 0:
        return Unavailable("no language data")
    # Half-up rounding.
    return Available(format_number(int(total_bytes / BYTES_PER_LINE + 0.5)))


def calculate_stats(
    combined: ContributionCalendar,
    recent: ContributionCalendar,
    languages: str | Outcome[str] | None = None,
    today: date | None = None,
) -> ContributionStats:
    """Derive statistics from the merged and the most recent calendars.

    The current streak only looks at `recent` so that the seam between merged
    periods can never join two unrelated runs. `languages` is the already
    computed top-languages summary, if any.
    """

    if today is None:
        today = datetime.now(UTC).date()

    if languages is None:
        languages_text = NO_LANGUAGES
    elif isinstance(languages, str):
        languages_text = languages
    else:
        languages_text = render(languages, NO_LANGUAGES)

    return ContributionStats(
        total_commits=combined.total_commit_contributions,
        total_pull_requests=combined.total_pull_request_contributions,
        active_repositories=combined.total_repository_contributions,
        current_streak=current_streak(recent, today),
        longest_streak=longest_streak(combined),
        most_active_day=render(most_active_day(combined), NO_ACTIVE_DAY),
        top_languages=languages_text,
    )


def summarize_month(
    calendar: ContributionCalendar, year: int, month: int
) -> dict[str, object]:
    """Break down one calendar month: per-day rows, total and activity buckets."""

    buckets = {
        "No activity (0)": 0,
        "Low (1-9)": 0,
        "Medium (10-19)": 0,
        "High (20-29)": 0,
        "Very High (30+)": 0,
    }
    rows: list[dict[str, object]] = []
    total = 0

    for day in sorted(calendar.days(), key=lambda item: item.date):
        if day.date.year != year or day.date.month != month:
            continue

        count = day.contribution_count
        total += count
        rows.append(
            {
                "date": day.date.isoformat(),
                "weekday": DAY_NAMES[sunday_weekday(day.date)],
                "count": count,
                "level": contribution_level(count),
            }
        )

        if count == 0:
            buckets["No activity (0)"] += 1
        elif count < 10:
            buckets["Low (1-9)"] += 1
        elif count < 20:
            buckets["Medium (10-19)"] += 1
        elif count < 30:
            buckets["High (20-29)"] += 1
        else:
            buckets["Very High (30+)"] += 1

    return {"days": rows, "total": total, "levels": buckets}
