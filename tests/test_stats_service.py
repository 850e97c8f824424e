from datetime import date
from datetime import timedelta

from contribution_aggregator.api.schemas.contributions import ContributionCalendar
from contribution_aggregator.api.schemas.contributions import ContributionDay
from contribution_aggregator.api.schemas.contributions import ContributionWeek
from contribution_aggregator.core.outcome import Available
from contribution_aggregator.core.outcome import Unavailable
from contribution_aggregator.services.stats_service import calculate_stats
from contribution_aggregator.services.stats_service import contribution_level
from contribution_aggregator.services.stats_service import current_streak
from contribution_aggregator.services.stats_service import estimate_lines_of_code
from contribution_aggregator.services.stats_service import format_contribution_count
from contribution_aggregator.services.stats_service import format_number
from contribution_aggregator.services.stats_service import longest_streak
from contribution_aggregator.services.stats_service import most_active_day
from contribution_aggregator.services.stats_service import summarize_month
from contribution_aggregator.services.stats_service import top_languages


def build_calendar(start: date, counts: list[int], **totals: int) -> ContributionCalendar:
    """Build a Sunday-first calendar with one count per day starting at `start`."""

    weeks: list[ContributionWeek] = []
    current: list[ContributionDay] = []
    for offset, count in enumerate(counts):
        day = start + timedelta(days=offset)
        if day.weekday() == 6 and current:
            weeks.append(ContributionWeek(contribution_days=current))
            current = []
        current.append(ContributionDay(date=day, contribution_count=count, color="#ebedf0"))
    if current:
        weeks.append(ContributionWeek(contribution_days=current))
    return ContributionCalendar(
        total_contributions=totals.get("total", sum(counts)),
        total_commit_contributions=totals.get("commits", 0),
        total_pull_request_contributions=totals.get("prs", 0),
        total_repository_contributions=totals.get("repos", 0),
        weeks=weeks,
    )


def test_all_zero_calendar_has_no_streak_and_no_active_day() -> None:
    calendar = build_calendar(date(2026, 1, 1), [0] * 30)

    assert longest_streak(calendar) == 0
    assert most_active_day(calendar) == Unavailable("no contributions")
    assert calculate_stats(calendar, calendar, today=date(2026, 1, 30)).most_active_day == "None"


def test_current_streak_counts_back_from_today() -> None:
    today = date(2026, 3, 10)
    start = today - timedelta(days=9)
    counts = [1, 1, 1, 1, 0, 2, 3, 1, 1, 4]
    calendar = build_calendar(start, counts)

    assert current_streak(calendar, today) == 5


def test_current_streak_is_zero_when_today_missing() -> None:
    calendar = build_calendar(date(2026, 3, 1), [3, 3, 3])

    assert current_streak(calendar, date(2026, 3, 10)) == 0


def test_current_streak_is_zero_when_today_has_no_contributions() -> None:
    calendar = build_calendar(date(2026, 3, 1), [3, 3, 0])

    assert current_streak(calendar, date(2026, 3, 3)) == 0


def test_current_streak_never_exceeds_period_total() -> None:
    calendar = build_calendar(date(2026, 3, 1), [1, 1, 1, 1])

    streak = current_streak(calendar, date(2026, 3, 4))

    assert streak == 4
    assert streak <= calendar.total_contributions


def test_longest_streak_picks_longer_run() -> None:
    calendar = build_calendar(date(2026, 1, 4), [1, 2, 1, 0, 1, 1, 1, 1, 1, 1, 1])

    assert longest_streak(calendar) == 7


def test_longest_streak_counts_run_in_progress_at_end() -> None:
    calendar = build_calendar(date(2026, 1, 4), [1, 0, 5, 5])

    assert longest_streak(calendar) == 2


def test_most_active_day_uses_date_not_position() -> None:
    # 2026-01-07 is a Wednesday even though it is the first stored day.
    calendar = ContributionCalendar(
        weeks=[
            ContributionWeek(
                contribution_days=[
                    ContributionDay(date=date(2026, 1, 7), contribution_count=9),
                    ContributionDay(date=date(2026, 1, 8), contribution_count=2),
                ]
            )
        ]
    )

    assert most_active_day(calendar) == Available("Wednesday")


def test_top_languages_formats_shares() -> None:
    result = top_languages({"A": 800, "B": 150, "C": 50})

    assert result == Available("A (80.0%), B (15.0%), C (5.0%)")


def test_top_languages_keeps_only_three() -> None:
    result = top_languages({"Go": 10, "Python": 40, "Rust": 30, "C": 20})

    assert result == Available("Python (40.0%), Rust (30.0%), C (20.0%)")


def test_top_languages_without_data_is_unavailable() -> None:
    assert isinstance(top_languages({}), Unavailable)


def test_calculate_stats_uses_both_calendars() -> None:
    today = date(2026, 1, 10)
    combined = build_calendar(
        date(2025, 12, 20), [1] * 12 + [0] + [1] * 9, commits=120, prs=7, repos=5
    )
    recent = build_calendar(date(2026, 1, 1), [0, 1, 1, 1, 1, 1, 1, 1, 1, 1])

    stats = calculate_stats(combined, recent, languages="Python (100.0%)", today=today)

    assert stats.total_commits == 120
    assert stats.total_pull_requests == 7
    assert stats.active_repositories == 5
    assert stats.current_streak == 9
    assert stats.longest_streak == 12
    assert stats.top_languages == "Python (100.0%)"


def test_calculate_stats_defaults_languages_to_sentinel() -> None:
    calendar = build_calendar(date(2026, 1, 1), [1, 2])

    stats = calculate_stats(calendar, calendar, today=date(2026, 1, 2))

    assert stats.top_languages == "N/A"


def test_calculate_stats_accepts_language_outcome() -> None:
    calendar = build_calendar(date(2026, 1, 1), [1, 2])

    stats = calculate_stats(
        calendar, calendar, languages=top_languages({}), today=date(2026, 1, 2)
    )

    assert stats.top_languages == "N/A"


def test_calculate_stats_is_idempotent() -> None:
    calendar = build_calendar(date(2026, 1, 1), [3, 0, 2, 2, 5, 0, 1])

    first = calculate_stats(calendar, calendar, today=date(2026, 1, 7))
    second = calculate_stats(calendar, calendar, today=date(2026, 1, 7))

    assert first == second


def test_contribution_level_thresholds() -> None:
    assert [contribution_level(count) for count in (0, 1, 3, 7, 10)] == [0, 1, 2, 3, 4]


def test_format_contribution_count() -> None:
    assert format_contribution_count(1) == "1 contribution"
    assert format_contribution_count(4) == "4 contributions"


def test_summarize_month_filters_and_buckets_days() -> None:
    calendar = build_calendar(date(2025, 12, 30), [4, 4, 0, 12, 25, 31])

    summary = summarize_month(calendar, 2026, 1)

    assert summary["total"] == 68
    assert [row["date"] for row in summary["days"]] == [
        "2026-01-01",
        "2026-01-02",
        "2026-01-03",
        "2026-01-04",
    ]
    assert summary["days"][0]["weekday"] == "Thursday"
    assert summary["levels"] == {
        "No activity (0)": 1,
        "Low (1-9)": 0,
        "Medium (10-19)": 1,
        "High (20-29)": 1,
        "Very High (30+)": 1,
    }


def test_estimate_lines_of_code_abbreviates_thousands() -> None:
    assert estimate_lines_of_code({"Python": 40_000, "Go": 20_000}) == Available("1.5k")
    assert estimate_lines_of_code({"Shell": 4_020}) == Available("101")


def test_estimate_lines_of_code_without_data_is_unavailable() -> None:
    assert isinstance(estimate_lines_of_code({}), Unavailable)


def test_format_number() -> None:
    assert format_number(999) == "999"
    assert format_number(15_230) == "15.2k"
