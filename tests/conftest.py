"""Shared fixtures."""

import pytest

from tests.helpers import RecordingNotifier


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
