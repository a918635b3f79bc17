import pytest

from handoff.utils.logging import LogEntry, sub, unsub


@pytest.fixture
def logs():
	"""Collects the log entries sent during the test."""
	entries: list[LogEntry] = []
	sink = sub(entries.append)
	yield entries
	unsub(sink)


# EOF
