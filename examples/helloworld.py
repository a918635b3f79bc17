"""
Basic Hello World Example

Runs the hello world handler against an HTTP/1.1 stream transport that
writes to the standard output.

Usage:
    python helloworld.py
"""

import sys

from handoff import Dispatcher, IncomingRequest, MessageHandler, StreamTransport
from handoff.utils.logging import info

if __name__ == "__main__":
	handler = MessageHandler("Hello, world!\n", contentType="text/plain")
	Dispatcher(handler).dispatch(
		IncomingRequest("GET", "/hello"), StreamTransport(sys.stdout.buffer)
	)
	info("Exchange done", Status=handler.report.status.name if handler.report else None)

# EOF
