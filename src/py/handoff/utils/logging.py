import sys
import time
from contextvars import ContextVar
from enum import Enum
from typing import Any, Callable, NamedTuple, TextIO

from ..config import LOG_LEVEL, LOG_OUTPUT
from .term import Term

__doc__ = """
Structured logging. Every logging function takes a message and ad-hoc
keyword context, builds a `LogEntry` and sends it. Sent entries are
dispatched to the sinks registered with `sub` (which is how tests and
telemetry observe exchanges) and written to the error stream when their
level is enabled.
"""

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="handoff")


class LogType(Enum):
	Message = 0  # A general information message
	Metric = 10  # A data point/metric
	Event = 20  # An event


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Checkpoint = 20
	Warning = 30  # A Warning
	Error = 40  # A managed error
	Exception = 50  # An un-managed error
	Alert = 60  # Alerts need to be relayed
	Critical = 70  # Critical needs to be relayed


LOG_LEVEL_COLOR = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Checkpoint: 81,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
	LogLevel.Alert: 89,
	LogLevel.Critical: 163,
}


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: Any = None
	context: dict[str, Any] | None = None


TLogSink = Callable[[LogEntry], None]

# -----------------------------------------------------------------------------
#
# SINKS
#
# -----------------------------------------------------------------------------


class Logging:
	"""Holds the output stream, the enabled level and the registered sinks."""

	# When unset, the standard stream named by LOG_OUTPUT at the time of writing
	Output: TextIO | None = None
	Level: LogLevel = LogLevel.__members__.get(LOG_LEVEL, LogLevel.Info)
	Sinks: list[TLogSink] = []


def sub(sink: TLogSink) -> TLogSink:
	Logging.Sinks.append(sink)
	return sink


def unsub(sink: TLogSink) -> None:
	if sink in Logging.Sinks:
		Logging.Sinks.remove(sink)


def output() -> TextIO:
	return Logging.Output or (sys.stdout if LOG_OUTPUT == "stdout" else sys.stderr)


def setLevel(level: LogLevel | str) -> LogLevel:
	Logging.Level = level if isinstance(level, LogLevel) else LogLevel[level]
	return Logging.Level


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(
			f"{Term.BOLD}{k}{Term.RESET}={formatData(v)}" for k, v in value.items()
		)
	elif isinstance(value, list) or isinstance(value, tuple):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def send(entry: LogEntry) -> LogEntry:
	for sink in list(Logging.Sinks):
		sink(entry)
	if entry.level.value < Logging.Level.value:
		return entry
	clr: str = Term.Color(LOG_LEVEL_COLOR[entry.level])
	out = output()
	if entry.type == LogType.Event:
		out.write(
			f"{clr}{Term.BOLD}[{entry.origin}] {entry.name}{Term.RESET} {formatData(entry.value)} {formatData(entry.context)}{Term.RESET}\n"
		)
	else:
		out.write(
			f"{clr}{Term.BOLD}[{entry.origin}]{Term.RESET} {entry.message} {formatData(entry.context)}{Term.RESET}\n"
		)
	out.flush()
	return entry


def entry(
	*,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: Any = None,
	context: dict[str, Any],
	origin: str | None = None,
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time(),
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
	)


# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------


def debug(message: str, *, origin: str | None = None, **context: Any) -> LogEntry:
	return send(
		entry(message=message, level=LogLevel.Debug, origin=origin, context=context)
	)


def info(message: str, *, origin: str | None = None, **context: Any) -> LogEntry:
	return send(entry(message=message, origin=origin, context=context))


def warning(message: str, *, origin: str | None = None, **context: Any) -> LogEntry:
	return send(
		entry(message=message, level=LogLevel.Warning, origin=origin, context=context)
	)


def error(
	message: str,
	code: int | str | None,
	*,
	origin: str | None = None,
	**context: Any,
) -> LogEntry:
	return send(
		entry(
			message=message,
			value=code,
			level=LogLevel.Error,
			origin=origin,
			context=context,
		)
	)


def event(
	event: str,
	value: Any = None,
	*,
	origin: str | None = None,
	**context: Any,
) -> LogEntry:
	return send(
		entry(
			name=event,
			value=value,
			type=LogType.Event,
			origin=origin,
			context=context,
		)
	)


def exception(
	exception: BaseException,
	message: str | None = None,
) -> BaseException:
	"""Logs the exception and its traceback, returning the exception so that
	this can be used as `raise exception(e)`."""
	try:
		send(
			entry(
				message=f"{message}: [{exception.__class__.__name__}] {exception}"
				if message
				else f"[{exception.__class__.__name__}] {exception}",
				level=LogLevel.Exception,
				value=exception,
				context={},
			)
		)
		if LogLevel.Exception.value >= Logging.Level.value:
			out = output()
			tb = exception.__traceback__
			while tb:
				code = tb.tb_frame.f_code
				out.write(
					f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n",
				)
				tb = tb.tb_next
			out.flush()
	except Exception:  # nosec: B110
		# NOTE: This is called from exception handlers, including sinks, so it
		# must never raise itself.
		pass
	return exception


LOGGERS: dict[Callable[..., LogEntry], LogLevel] = {
	debug: LogLevel.Debug,
	info: LogLevel.Info,
	warning: LogLevel.Warning,
	error: LogLevel.Error,
}


def logged(item: Callable[..., Any]) -> bool:
	"""Takes one of the logging functions and tells if it is currently
	enabled. This is used to guard against building costly entries, as in
	`logged(debug) and debug(…)`. Sinks see every entry, so this is always
	true while a sink is registered."""
	if Logging.Sinks:
		return True
	level = LOGGERS.get(item)
	return True if level is None else level.value >= Logging.Level.value


# EOF
