import asyncio
import logging
from collections.abc import Iterable
from collections.abc import Mapping
from datetime import UTC
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError

from contribution_aggregator.api.schemas.contributions import ContributionCalendar
from contribution_aggregator.api.schemas.contributions import LanguageTally
from contribution_aggregator.api.schemas.contributions import RepositoryIdentity
from contribution_aggregator.core.errors import AuthenticationError
from contribution_aggregator.core.errors import MalformedResponseError
from contribution_aggregator.core.errors import RateLimitError
from contribution_aggregator.core.errors import UpstreamGraphError
from contribution_aggregator.core.errors import UpstreamHttpError
from contribution_aggregator.core.errors import UpstreamTransportError
from contribution_aggregator.settings import Settings


logger = logging.getLogger(__name__)

CONTRIBUTIONS_QUERY = """
query($login: String!, $from: DateTime!, $to: DateTime!) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      totalCommitContributions
      totalPullRequestContributions
      totalRepositoryContributions
      contributionCalendar {
        totalContributions
        weeks {
          contributionDays {
            date
            contributionCount
            color
          }
        }
      }
    }
  }
}
"""


def format_github_datetime(value: datetime) -> str:
    """Format a timezone-aware datetime the way GitHub's DateTime scalar expects."""

    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_github_datetime(raw_value: str) -> datetime:
    return datetime.fromisoformat(raw_value.replace("Z", "+00:00"))


def _check_range(start: datetime, end: datetime) -> None:
    if start.tzinfo is None or end.tzinfo is None:
        raise ValueError("start and end must be timezone-aware")
    if start > end:
        raise ValueError("start must be before or equal to end")


class GitHubClient:
    """Read-only adapter over the GitHub GraphQL and REST APIs.

    The adapter never retries; callers decide how to recover from errors.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        token: str | None,
        graphql_url: str = "https://api.github.com/graphql",
        api_base_url: str = "https://api.github.com",
        repository_page_size: int = 100,
        user_agent: str = "contribution-aggregator",
    ) -> None:
        self._http = http
        self._token = token.strip() if token else None
        self._graphql_url = graphql_url
        self._api_base_url = api_base_url.rstrip("/")
        # GitHub caps per_page at 100.
        self.repository_page_size = min(max(1, repository_page_size), 100)
        self._user_agent = user_agent

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient, settings: Settings) -> "GitHubClient":
        return cls(
            http=http,
            token=settings.github_token,
            graphql_url=settings.github_graphql_url,
            api_base_url=settings.github_api_base_url,
            repository_page_size=settings.repository_page_size,
            user_agent=settings.github_user_agent,
        )

    def _headers(self) -> dict[str, str]:
        if not self._token:
            raise AuthenticationError(
                "GITHUB_TOKEN is not set. Create a personal access token with "
                "read:user scope and expose it as GITHUB_TOKEN."
            )
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": self._user_agent,
        }

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        headers = self._headers()
        try:
            response = await self._http.request(method, url, headers=headers, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
            raise UpstreamTransportError(f"GitHub request failed: {exc}") from exc

        if response.status_code == 401:
            raise AuthenticationError("GitHub token is invalid")
        if response.status_code in {403, 429} and (
            response.headers.get("x-ratelimit-remaining") == "0"
            or "retry-after" in response.headers
        ):
            raise RateLimitError(
                response.status_code,
                response.text,
                reset_at=_rate_limit_reset(response),
            )
        if not response.is_success:
            raise UpstreamHttpError(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError("GitHub response is not valid JSON") from exc

    async def fetch_contributions_for_period(
        self, username: str, start: datetime, end: datetime
    ) -> ContributionCalendar:
        """Fetch the contribution calendar of a user between two instants."""

        _check_range(start, end)
        payload = await self._send(
            "POST",
            self._graphql_url,
            json={
                "query": CONTRIBUTIONS_QUERY,
                "variables": {
                    "login": username,
                    "from": format_github_datetime(start),
                    "to": format_github_datetime(end),
                },
            },
        )

        if not isinstance(payload, Mapping):
            raise MalformedResponseError("GitHub GraphQL response is invalid")

        errors = payload.get("errors")
        if errors:
            messages = [
                str(error.get("message", "Unknown error"))
                if isinstance(error, Mapping)
                else str(error)
                for error in (errors if isinstance(errors, list) else [errors])
            ]
            raise UpstreamGraphError(messages)

        data = payload.get("data")
        if not isinstance(data, Mapping):
            raise MalformedResponseError("GitHub GraphQL data is missing")

        user = data.get("user")
        if not isinstance(user, Mapping):
            raise MalformedResponseError("GitHub user not found")

        collection = user.get("contributionsCollection")
        if not isinstance(collection, Mapping):
            raise MalformedResponseError("GitHub contributionsCollection is missing")

        calendar = collection.get("contributionCalendar")
        if not isinstance(calendar, Mapping):
            raise MalformedResponseError("GitHub contributionCalendar is missing")

        try:
            return ContributionCalendar.model_validate(
                {
                    "totalContributions": calendar.get("totalContributions"),
                    "totalCommitContributions": collection.get(
                        "totalCommitContributions"
                    ),
                    "totalPullRequestContributions": collection.get(
                        "totalPullRequestContributions"
                    ),
                    "totalRepositoryContributions": collection.get(
                        "totalRepositoryContributions"
                    ),
                    "weeks": calendar.get("weeks"),
                }
            )
        except ValidationError as exc:
            raise MalformedResponseError(
                "GitHub contribution calendar has an unexpected shape"
            ) from exc

    async def fetch_repositories_with_activity(
        self, username: str, start: datetime, end: datetime
    ) -> set[RepositoryIdentity]:
        """Return repositories of a user last pushed inside `[start, end]`.

        Only the first page of most recently pushed repositories is read, so
        users with more active repositories than one page are undercounted.
        """

        _check_range(start, end)
        payload = await self._send(
            "GET",
            f"{self._api_base_url}/users/{username}/repos",
            params={
                "sort": "pushed",
                "direction": "desc",
                "per_page": self.repository_page_size,
            },
        )
        if not isinstance(payload, list):
            raise MalformedResponseError("GitHub repository listing is invalid")

        if len(payload) >= self.repository_page_size:
            logger.debug(
                "Repository listing for %s filled a whole page; active count may be low",
                username,
            )

        repositories: set[RepositoryIdentity] = set()
        for item in payload:
            if not isinstance(item, Mapping):
                continue
            full_name = item.get("full_name")
            pushed_at = item.get("pushed_at")
            if not isinstance(full_name, str) or not isinstance(pushed_at, str):
                continue
            try:
                pushed = parse_github_datetime(pushed_at)
            except ValueError:
                continue
            if start <= pushed <= end:
                repositories.add(full_name)

        return repositories

    async def fetch_commit_count(
        self, username: str, start: datetime, end: datetime
    ) -> int:
        """Count commits authored by a user; the range is truncated to days."""

        _check_range(start, end)
        query = (
            f"author:{username} "
            f"author-date:{start.date().isoformat()}..{end.date().isoformat()}"
        )
        return await self._search_total("commits", query)

    async def fetch_pull_request_count(
        self, username: str, start: datetime, end: datetime
    ) -> int:
        """Count pull requests opened by a user; the range is truncated to days."""

        _check_range(start, end)
        query = (
            f"author:{username} type:pr "
            f"created:{start.date().isoformat()}..{end.date().isoformat()}"
        )
        return await self._search_total("issues", query)

    async def _search_total(self, kind: str, query: str) -> int:
        payload = await self._send(
            "GET",
            f"{self._api_base_url}/search/{kind}",
            params={"q": query, "per_page": 1},
        )
        if not isinstance(payload, Mapping):
            raise MalformedResponseError(f"GitHub {kind} search response is invalid")

        total = payload.get("total_count")
        if not isinstance(total, int) or isinstance(total, bool) or total < 0:
            raise MalformedResponseError(f"GitHub {kind} search total_count is missing")
        return total

    async def fetch_language_bytes(
        self, repositories: Iterable[RepositoryIdentity]
    ) -> LanguageTally:
        """Sum language byte counts over repositories.

        Repositories whose breakdown cannot be fetched contribute nothing.
        """

        # Fail before fanning out when there is no credential.
        self._headers()

        async with asyncio.TaskGroup() as group:
            tasks = [
                group.create_task(self._repository_languages(repository))
                for repository in sorted(set(repositories))
            ]

        tally: LanguageTally = {}
        for task in tasks:
            for language, size in task.result().items():
                tally[language] = tally.get(language, 0) + size
        return tally

    async def _repository_languages(
        self, repository: RepositoryIdentity
    ) -> LanguageTally:
        try:
            payload = await self._send(
                "GET", f"{self._api_base_url}/repos/{repository}/languages"
            )
            if not isinstance(payload, Mapping):
                raise MalformedResponseError("GitHub languages response is invalid")
        except Exception as exc:
            # One repository must never fail the whole fan-out.
            logger.warning("Skipping languages for %s: %s", repository, exc)
            return {}

        return {
            language: size
            for language, size in payload.items()
            if isinstance(language, str)
            and isinstance(size, int)
            and not isinstance(size, bool)
            and size > 0
        }


def _rate_limit_reset(response: httpx.Response) -> datetime | None:
    raw_reset = response.headers.get("x-ratelimit-reset")
    if raw_reset is None or not raw_reset.isdigit():
        return None
    return datetime.fromtimestamp(int(raw_reset), tz=UTC)
