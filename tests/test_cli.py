import pytest

from handoff.__main__ import main
from handoff.utils.logging import Logging, LogLevel


def test_cli_writes_response(capsysbinary):
	assert main(["Hi", "-H", "Content-Length: 2", "-t", "text/plain"]) == 0
	out = capsysbinary.readouterr().out
	assert out == (
		b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\nContent-Type: text/plain\r\n\r\nHi"
	)


def test_cli_invalid_header(capsysbinary):
	assert main(["Hi", "-H", "bad name: x"]) == 1
	assert capsysbinary.readouterr().out.startswith(b"HTTP/1.1 500 ")


@pytest.fixture
def level():
	previous = Logging.Level
	yield
	Logging.Level = previous


def test_cli_sets_log_level(capsysbinary, level):
	assert main(["Hi", "--log-level", "Error"]) == 0
	assert Logging.Level is LogLevel.Error
	# The construction error is below the level, so nothing is written
	assert main(["Hi", "-s", "42", "-l", "Critical"]) == 1
	assert capsysbinary.readouterr().err == b""


def test_cli_rejects_unknown_log_level(capsysbinary, level):
	with pytest.raises(SystemExit):
		main(["Hi", "--log-level", "Loud"])


# EOF
