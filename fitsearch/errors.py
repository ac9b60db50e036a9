"""Exceptions shared by the suggestion, compatibility and storage layers.

None of these is meant to reach an end user: lookups degrade to reduced
results, corrupt storage reads as empty, and stale results are dropped.
"""
from __future__ import annotations


class LookupFailure(Exception):
    """The search index rejected a request or could not be reached."""

    def __init__(self, query: str, reason: str) -> None:
        super().__init__(f"lookup failed for {query!r}: {reason}")
        self.query = query
        self.reason = reason


class StorageCorrupt(Exception):
    """A persisted value could not be decoded into the expected shape."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"stored value under {key!r} is unusable: {reason}")
        self.key = key
        self.reason = reason


class StaleResult(Exception):
    """An async result was superseded by a newer request before it finished."""
