from dataclasses import dataclass
from typing import Generic
from typing import TypeVar


T = TypeVar("T")


@dataclass(frozen=True)
class Available(Generic[T]):
    """A computed value."""

    value: T


@dataclass(frozen=True)
class Unavailable:
    """No data to compute a value from."""

    reason: str = ""


Outcome = Available[T] | Unavailable


def render(outcome: Outcome[str], placeholder: str) -> str:
    """Return the wrapped value, or the placeholder for missing data."""

    match outcome:
        case Available(value=value):
            return value
        case Unavailable():
            return placeholder
    raise TypeError(f"Unsupported outcome: {outcome!r}")
