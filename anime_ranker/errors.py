"""Exception types raised by the ranking core and the AniList client."""

from __future__ import annotations

from typing import Optional


class RankerError(Exception):
    """Base class for all anime-ranker errors."""


class IndexOutOfRange(RankerError, IndexError):
    def __init__(self, index: int, length: int):
        super().__init__(f"Index {index} out of range for list of length {length}")
        self.index = index
        self.length = length


class UnknownItem(RankerError, KeyError):
    def __init__(self, item_id: str, kind: str = "item"):
        super().__init__(f"No {kind} with id {item_id!r}")
        self.item_id = item_id
        self.kind = kind

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise
        return self.args[0]


class AniListError(RankerError):
    """
    A request to the AniList API failed.

    ``data`` holds whatever partial payload came back next to GraphQL
    ``errors`` (aliased mutations can half-succeed).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, data: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.data = data


class AuthenticationError(AniListError):
    """The access token was rejected; retrying cannot help."""
