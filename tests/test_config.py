import os
import subprocess  # nosec: B404
import sys

from handoff.config import DEFAULT_FLUSH_LIMIT, positive

SCRIPT = """
from handoff.config import FLUSH_LIMIT
from handoff.exchange import ResponseExchange
from handoff.http.model import IncomingRequest, ResponseOutparam
from handoff.transport import MemoryTransport

transport = MemoryTransport()
report = ResponseExchange("Hello, world!").run(IncomingRequest(), ResponseOutparam(transport))
print(FLUSH_LIMIT, report.status.name, transport.body.decode())
"""


def test_positive():
	assert positive("8", 4096) == 8
	assert positive(None, 4096) == 4096
	assert positive("0", 4096) == 4096
	assert positive("-5", 4096) == 4096
	assert positive("abc", 4096) == 4096


def test_invalid_flush_limit_falls_back_to_default():
	result = subprocess.run(  # nosec: B603
		[sys.executable, "-c", SCRIPT],
		env={**os.environ, "HANDOFF_FLUSH_LIMIT": "0", "HANDOFF_LOG_OUTPUT": "stderr"},
		capture_output=True,
		text=True,
	)
	assert result.returncode == 0, result.stderr
	assert result.stdout.strip() == f"{DEFAULT_FLUSH_LIMIT} Complete Hello, world!"


# EOF
