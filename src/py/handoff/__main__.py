import argparse
import sys

from .config import MESSAGE
from .dispatcher import Dispatcher, DispatchOptions
from .exchange import ResponseExchange
from .handler import handler
from .http.model import IncomingRequest
from .transport import StreamTransport
from .utils.logging import Logging, LogLevel, setLevel


def parseHeader(value: str) -> tuple[str, str]:
	name, sep, rest = value.partition(":")
	if not sep:
		raise argparse.ArgumentTypeError(f"Expected NAME:VALUE, got: {value!r}")
	return name.strip(), rest.strip()


def main(args: list[str] | None = None) -> int:
	"""Runs a single exchange, writing the HTTP response on the standard
	output. Returns 0 when the body was completely delivered."""
	parser = argparse.ArgumentParser(
		prog="handoff",
		description="Delivers a response through a one-shot exchange",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	parser.add_argument(
		"message",
		metavar="MESSAGE",
		nargs="?",
		default=MESSAGE,
		help="The response body",
	)
	parser.add_argument(
		"-s",
		"--status",
		action="store",
		dest="status",
		type=int,
		default=200,
		help="The response status code",
	)
	parser.add_argument(
		"-H",
		"--header",
		action="append",
		dest="headers",
		type=parseHeader,
		metavar="NAME:VALUE",
		help="Response header (can be repeated)",
	)
	parser.add_argument(
		"-t",
		"--content-type",
		action="store",
		dest="contentType",
		help="The response content type",
	)
	parser.add_argument(
		"-l",
		"--log-level",
		action="store",
		dest="logLevel",
		choices=list(LogLevel.__members__),
		default=Logging.Level.name,
		help="Only log entries at or above this level",
	)
	options = parser.parse_args(args=args)
	setLevel(options.logLevel)

	@handler
	def respond(request: IncomingRequest) -> ResponseExchange:
		return ResponseExchange(
			options.message,
			status=options.status,
			headers=options.headers,
			contentType=options.contentType,
		)

	dispatcher = Dispatcher(respond, DispatchOptions(logRequests=False))
	dispatcher.dispatch(IncomingRequest(), StreamTransport(sys.stdout.buffer))
	report = respond.report
	return 0 if report and not report.isDegraded and report.isCommitted else 1


if __name__ == "__main__":
	sys.exit(main(sys.argv[1:]))

# EOF
