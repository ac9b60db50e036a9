"""Shared fixtures."""
from __future__ import annotations

import pytest

from fitsearch.recall import RecallStore
from tests.fakes import RecordingStorage


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def recall(storage: RecordingStorage) -> RecallStore:
    return RecallStore(storage, key="recentSearches", cap=5)
