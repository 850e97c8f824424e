from datetime import date
from datetime import datetime

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator
from pydantic.alias_generators import to_camel


RepositoryIdentity = str
LanguageTally = dict[str, int]


class CamelModel(BaseModel):
    """Base model that serializes field names in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContributionDay(CamelModel):
    """Single day of a contribution calendar."""

    model_config = ConfigDict(frozen=True)

    date: date
    contribution_count: int = Field(ge=0)
    color: str = ""


class ContributionWeek(CamelModel):
    """Sunday-first week of contribution days."""

    contribution_days: list[ContributionDay] = Field(default_factory=list, max_length=7)


class ContributionCalendar(CamelModel):
    """Day-by-day contribution record plus aggregate counters.

    The aggregate counters are not required to match the sum of the days:
    merged calendars carry counters taken from the REST search API.
    """

    total_contributions: int = Field(default=0, ge=0)
    total_commit_contributions: int = Field(default=0, ge=0)
    total_pull_request_contributions: int = Field(default=0, ge=0)
    total_repository_contributions: int = Field(default=0, ge=0)
    weeks: list[ContributionWeek] = Field(default_factory=list)

    def days(self) -> list[ContributionDay]:
        """Return every day of the calendar in stored order."""

        return [day for week in self.weeks for day in week.contribution_days]


class ContributionStats(CamelModel):
    """Statistics derived from contribution calendars."""

    total_commits: int
    total_pull_requests: int
    active_repositories: int
    current_streak: int
    longest_streak: int
    most_active_day: str
    top_languages: str


class TwoYearContributions(CamelModel):
    """Payload consumed by the presentation layer."""

    two_year_stats: ContributionCalendar
    recent_calendar: ContributionCalendar
    top_languages: str
    # Kept for derived figures; never part of the serialized payload.
    language_bytes: LanguageTally = Field(default_factory=dict, exclude=True)


class ContributionReport(ContributionStats):
    """Statistics plus the estimated lines of code behind the language shares."""

    total_lines_of_code: str


class Period(BaseModel):
    """Time window over which one calendar is fetched."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_bounds(self) -> "Period":
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("period bounds must be timezone-aware")
        if self.start > self.end:
            raise ValueError("period start must be before or equal to end")
        return self

    @property
    def label(self) -> str:
        return str(self.start.year)
