import pytest

from tests.fakes import RecordingSink


@pytest.fixture
def recording_sink():
    return RecordingSink()
