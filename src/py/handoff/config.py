from os import getenv

DEFAULT_FLUSH_LIMIT: int = 4096


def positive(value: str | None, default: int) -> int:
	"""Parses `value` as a strictly positive integer, falling back to
	`default` when it is missing or invalid."""
	try:
		n = int(value) if value is not None else default
	except ValueError:
		return default
	return n if n > 0 else default


# Message used by the default handler and the command line
MESSAGE: str = getenv("HANDOFF_MESSAGE", "Hello, world!")

# One of Debug, Info, Checkpoint, Warning, Error, Exception, Alert, Critical
LOG_LEVEL: str = getenv("HANDOFF_LOG_LEVEL", "Info")

LOG_OUTPUT: str = getenv("HANDOFF_LOG_OUTPUT", "stderr")

# Largest chunk handed to a single blocking write-and-flush
FLUSH_LIMIT: int = positive(getenv("HANDOFF_FLUSH_LIMIT"), DEFAULT_FLUSH_LIMIT)

# EOF
