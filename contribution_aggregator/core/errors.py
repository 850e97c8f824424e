from datetime import datetime


class GitHubAPIError(Exception):
    """Base class for failures talking to the GitHub APIs."""


class AuthenticationError(GitHubAPIError):
    """Raised when no GitHub token is configured or GitHub rejects it."""


class UpstreamHttpError(GitHubAPIError):
    """Raised when GitHub answers with a non-2xx status code."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"GitHub API HTTP error: {status_code}")
        self.status_code = status_code
        self.body = body


class RateLimitError(UpstreamHttpError):
    """Raised when GitHub reports the rate limit as exhausted."""

    def __init__(
        self, status_code: int, body: str, reset_at: datetime | None = None
    ) -> None:
        super().__init__(status_code, body)
        self.reset_at = reset_at


class UpstreamTransportError(GitHubAPIError):
    """Raised when the request never produced an HTTP response."""


class UpstreamGraphError(GitHubAPIError):
    """Raised when the GraphQL envelope carries an `errors` list."""

    def __init__(self, messages: list[str]) -> None:
        first = messages[0] if messages else "Unknown error"
        super().__init__(f"GitHub GraphQL error: {first}")
        self.messages = messages


class MalformedResponseError(GitHubAPIError):
    """Raised when a response does not have the expected shape."""


class AggregationTimeoutError(Exception):
    """Raised when the whole aggregation exceeds the caller's deadline."""
