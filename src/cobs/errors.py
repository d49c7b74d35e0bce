"""Exceptions raised while reading, building and committing a series."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .core.days import RowStatus


class CObsError(Exception):
    """Base class for every error that aborts a build."""


class RowValidationError(CObsError):
    """A source row or event failed column, parse or range validation."""

    def __init__(self, ordinal: int, status: "RowStatus"):
        self.ordinal = ordinal
        self.status = status
        super().__init__(f"validation error at row {ordinal}: row {status.description}")


class ContiguityError(CObsError):
    """The merged series has a gap between two consecutive dates."""

    def __init__(self, message: str = "timeline not contiguous"):
        super().__init__(message)


class AccessError(CObsError):
    """The store could not be reached or read; the message is passed through."""


class DecodeError(CObsError):
    """An event payload could not be decoded."""

    def __init__(self, ordinal: int, message: str):
        self.ordinal = ordinal
        super().__init__(f"malformed event {ordinal}: {message}")


class InsufficientDataError(CObsError):
    """The series is shorter than the scenario engine's minimum lag allows."""

    def __init__(self, minimum: int, available: int):
        self.minimum = minimum
        self.available = available
        super().__init__(
            f"daily data must contain at least {minimum} rows, found {available}"
        )


class SupersededError(CObsError):
    """Another build committed past this build's registered position."""


class CommitConflictError(CObsError):
    """An append violated its expected-position precondition."""


__all__ = [
    "CObsError",
    "RowValidationError",
    "ContiguityError",
    "AccessError",
    "DecodeError",
    "InsufficientDataError",
    "SupersededError",
    "CommitConflictError",
]
