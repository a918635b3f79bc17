import re
from abc import ABC, abstractmethod
from enum import Enum
from types import TracebackType
from typing import ClassVar, Iterable, Iterator, NamedTuple

from ..config import FLUSH_LIMIT
from ..result import Err, Ok, Result
from ..utils.io import asBytes
from ..utils.logging import warning

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------

RE_TOKEN = re.compile(rb"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
RE_FORBIDDEN_VALUE = re.compile(rb"[\r\n\x00]")


def headername(name: str, *, headers: dict[str, str] = {}) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		headers[key] = normalized
		return normalized


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class ExchangeStage(Enum):
	"""The stages of an exchange, in the order they are executed."""

	Construct = 1
	Commit = 2
	Body = 3
	Write = 4
	Flush = 5
	Finish = 6


class ExchangeError(Exception):
	"""Base class for all the errors of an exchange, each tied to the stage
	where it happens."""

	STAGE: ClassVar[ExchangeStage] = ExchangeStage.Construct

	def __init__(self, message: str):
		super().__init__(message)
		self.message: str = message

	@property
	def stage(self) -> ExchangeStage:
		return self.STAGE

	@property
	def isPostCommit(self) -> bool:
		"""Errors after the commit can't be reported to the peer anymore."""
		return self.STAGE.value > ExchangeStage.Commit.value


class HeaderError(ExchangeError):
	"""Invalid header name or value, or mutation of frozen fields."""


class ConstructionError(ExchangeError):
	pass


class CommitError(ExchangeError):
	"""The out-param was already set, or the transport refused the response."""

	STAGE = ExchangeStage.Commit


class BodyError(ExchangeError):
	STAGE = ExchangeStage.Body


class WriteError(ExchangeError):
	STAGE = ExchangeStage.Write


class StreamError(ExchangeError):
	"""A failed write-and-flush. When `closed` is set, the stream was
	already closed and nothing was attempted."""

	STAGE = ExchangeStage.Flush

	def __init__(self, message: str, *, closed: bool = False):
		super().__init__(message)
		self.closed: bool = closed


class FinishError(ExchangeError):
	STAGE = ExchangeStage.Finish


class ErrorKind(Enum):
	InternalError = 0
	HTTPProtocolError = 1
	HTTPResponseIncomplete = 2
	HTTPResponseBodySize = 3
	ConnectionTerminated = 4


class ErrorCode(NamedTuple):
	"""The error a handler places in the out-param instead of a response."""

	kind: ErrorKind
	message: str | None = None

	@staticmethod
	def Internal(message: str | None = None) -> "ErrorCode":
		return ErrorCode(ErrorKind.InternalError, message)


# -----------------------------------------------------------------------------
#
# FIELDS
#
# -----------------------------------------------------------------------------


def checkField(name: str, value: bytes) -> HeaderError | None:
	"""Returns the error that makes the given field invalid, if any."""
	try:
		raw_name = name.encode("ascii")
	except UnicodeEncodeError:
		return HeaderError(f"Header name is not ASCII: {name!r}")
	if not RE_TOKEN.match(raw_name):
		return HeaderError(f"Invalid header name: {name!r}")
	if RE_FORBIDDEN_VALUE.search(value):
		return HeaderError(f"Invalid value for header {name!r}: {value!r}")
	return None


class Fields:
	"""An ordered, case-insensitive collection of header fields. Fields are
	frozen once the response that carries them is committed."""

	__slots__ = ["_entries", "_immutable"]

	@staticmethod
	def FromList(
		entries: Iterable[tuple[str, bytes | str]],
	) -> Result["Fields", HeaderError]:
		fields = Fields()
		for name, value in entries:
			res = fields.append(name, value)
			if isinstance(res, Err):
				return res
		return Ok(fields)

	def __init__(self) -> None:
		self._entries: list[tuple[str, bytes]] = []
		self._immutable: bool = False

	@property
	def isImmutable(self) -> bool:
		return self._immutable

	def freeze(self) -> "Fields":
		self._immutable = True
		return self

	def has(self, name: str) -> bool:
		key = name.lower()
		return any(k == key for k, _ in self._entries)

	def get(self, name: str) -> list[bytes]:
		key = name.lower()
		return [v for k, v in self._entries if k == key]

	def first(self, name: str) -> bytes | None:
		values = self.get(name)
		return values[0] if values else None

	def append(self, name: str, value: bytes | str) -> Result[None, HeaderError]:
		if self._immutable:
			return Err(HeaderError(f"Fields are immutable, can't append {name!r}"))
		raw = asBytes(value)
		if err := checkField(name, raw):
			return Err(err)
		self._entries.append((name.lower(), raw))
		return Ok(None)

	def set(self, name: str, values: list[bytes | str]) -> Result[None, HeaderError]:
		"""Replaces all the values of the given field."""
		if self._immutable:
			return Err(HeaderError(f"Fields are immutable, can't set {name!r}"))
		raw = [asBytes(_) for _ in values]
		for v in raw:
			if err := checkField(name, v):
				return Err(err)
		key = name.lower()
		self._entries = [_ for _ in self._entries if _[0] != key]
		self._entries += [(key, v) for v in raw]
		return Ok(None)

	def delete(self, name: str) -> Result[None, HeaderError]:
		if self._immutable:
			return Err(HeaderError(f"Fields are immutable, can't delete {name!r}"))
		key = name.lower()
		self._entries = [_ for _ in self._entries if _[0] != key]
		return Ok(None)

	def entries(self) -> list[tuple[str, bytes]]:
		return list(self._entries)

	def __iter__(self) -> Iterator[tuple[str, bytes]]:
		return iter(self._entries)

	def __len__(self) -> int:
		return len(self._entries)

	def __str__(self) -> str:
		return f"Fields({', '.join(f'{k}={v!r}' for k, v in self._entries)})"


# -----------------------------------------------------------------------------
#
# TRANSPORT
#
# -----------------------------------------------------------------------------


class Transport(ABC):
	"""The peer side of an exchange. Failures are raised as `OSError`
	subclasses, which the response objects turn into `Err` values."""

	@abstractmethod
	def commit(self, status: int, headers: Fields) -> None:
		"""Sends the response metadata."""
		...

	@abstractmethod
	def reject(self, error: ErrorCode) -> None:
		"""Reports that the handler could not produce a response."""
		...

	@abstractmethod
	def flush(self, data: bytes) -> None:
		"""Sends the given body bytes, blocking until they are flushed."""
		...

	@abstractmethod
	def finish(self, trailers: Fields | None) -> None: ...

	@abstractmethod
	def abort(self, reason: str) -> None:
		"""Drops the connection, the response is incomplete."""
		...


# -----------------------------------------------------------------------------
#
# REQUEST
#
# -----------------------------------------------------------------------------


class IncomingRequest(NamedTuple):
	"""The request a handler is invoked with. The exchange does not look
	into it."""

	method: str = "GET"
	path: str = "/"
	headers: Fields | None = None
	scheme: str = "http"
	authority: str | None = None


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class OutgoingResponse:
	"""A response under construction. Once committed through a
	`ResponseOutparam`, its status and headers are frozen and only body bytes
	may still flow. Bytes flushed before the commit are held and delivered
	right after it."""

	__slots__ = [
		"status",
		"headers",
		"_body",
		"_transport",
		"_pending",
		"_trailers",
		"_finished",
		"_aborted",
	]

	def __init__(self, headers: Fields):
		self.status: int = 200
		self.headers: Fields = headers
		self._body: OutgoingBody | None = None
		self._transport: Transport | None = None
		self._pending: bytearray = bytearray()
		self._trailers: Fields | None = None
		self._finished: bool = False
		self._aborted: bool = False

	@property
	def isCommitted(self) -> bool:
		return self._transport is not None

	@property
	def isAborted(self) -> bool:
		return self._aborted

	def setStatus(self, status: int) -> Result[None, ConstructionError]:
		if self.isCommitted:
			return Err(ConstructionError("Response is committed, status is frozen"))
		elif not (100 <= status <= 599):
			return Err(ConstructionError(f"Invalid status code: {status}"))
		else:
			self.status = status
			return Ok(None)

	def body(self) -> Result["OutgoingBody", BodyError]:
		"""Returns the body of this response, which can be retrieved at
		most once."""
		if self._aborted:
			return Err(BodyError("Response was aborted"))
		elif self._body is not None:
			return Err(BodyError("Response body was already taken"))
		else:
			self._body = OutgoingBody(self)
			return Ok(self._body)

	def abort(self, reason: str) -> None:
		"""Drops the exchange, this is how a cancelled body write ends."""
		if self._aborted:
			return
		self._aborted = True
		if self._transport:
			self._transport.abort(reason)

	def _commit(self, transport: Transport) -> None:
		if self._transport is not None:
			raise CommitError("Response was already committed")
		try:
			transport.commit(self.status, self.headers.freeze())
		except OSError as e:
			raise CommitError(f"Transport refused the response: {e}") from e
		self._transport = transport
		# Anything written before the commit goes right after the head
		data = bytes(self._pending)
		self._pending.clear()
		try:
			if data:
				transport.flush(data)
			if self._finished:
				transport.finish(self._trailers)
		except OSError as e:
			warning(
				"Buffered body could not be delivered",
				Size=len(data),
				Reason=str(e),
			)
			self.abort(str(e))

	def _deliver(self, data: bytes) -> None:
		if self._transport is None:
			self._pending += data
		else:
			self._transport.flush(data)

	def _finish(self, trailers: Fields | None) -> None:
		self._finished = True
		self._trailers = trailers.freeze() if trailers is not None else None
		if self._transport is not None:
			self._transport.finish(self._trailers)

	def __str__(self) -> str:
		return f"OutgoingResponse({self.status} {self.headers})"


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class OutgoingBody:
	"""The body channel of a response. It hands out a single output stream,
	and must be finished once the stream is closed."""

	__slots__ = ["response", "_stream", "_finished"]

	def __init__(self, response: OutgoingResponse):
		self.response: OutgoingResponse = response
		self._stream: OutputStream | None = None
		self._finished: bool = False

	@property
	def isFinished(self) -> bool:
		return self._finished

	@property
	def written(self) -> int:
		return self._stream.written if self._stream else 0

	def write(self) -> Result["OutputStream", WriteError]:
		"""Returns the stream to write the body with, which can be retrieved
		at most once."""
		if self.response.isAborted:
			return Err(WriteError("Exchange was aborted"))
		elif self._finished:
			return Err(WriteError("Body is already finished"))
		elif self._stream is not None:
			return Err(WriteError("Body stream was already taken"))
		else:
			self._stream = OutputStream(self)
			return Ok(self._stream)

	@classmethod
	def finish(
		cls, this: "OutgoingBody", trailers: Fields | None = None
	) -> Result[None, FinishError]:
		"""Completes the body, optionally with trailers. The body stream
		must be closed before."""
		if this._finished:
			return Err(FinishError("Body is already finished"))
		elif this.response.isAborted:
			return Err(FinishError("Exchange was aborted"))
		elif this._stream is not None and not this._stream.isClosed:
			return Err(FinishError("Body stream must be closed before finishing"))
		this._finished = True
		try:
			this.response._finish(trailers)
		except OSError as e:
			return Err(FinishError(f"Transport could not finish the body: {e}"))
		return Ok(None)


class OutputStream:
	"""Write access to a body. A failed write closes the stream."""

	__slots__ = ["body", "written", "_closed"]

	def __init__(self, body: OutgoingBody):
		self.body: OutgoingBody = body
		self.written: int = 0
		self._closed: bool = False

	@property
	def isClosed(self) -> bool:
		return self._closed

	def checkWrite(self) -> Result[int, StreamError]:
		"""Returns how many bytes can be passed to the next write."""
		if self._closed or self.body.response.isAborted:
			return Err(StreamError("Stream is closed", closed=True))
		return Ok(FLUSH_LIMIT)

	def blockingWriteAndFlush(self, data: bytes) -> Result[int, StreamError]:
		"""Writes at most `FLUSH_LIMIT` bytes and blocks until the transport
		has flushed them."""
		ready = self.checkWrite()
		if isinstance(ready, Err):
			return ready
		elif len(data) > ready.value:
			self._closed = True
			return Err(
				StreamError(f"Write of {len(data)} bytes exceeds {ready.value} bytes")
			)
		try:
			self.body.response._deliver(bytes(data))
		except OSError as e:
			self._closed = True
			return Err(StreamError(str(e) or e.__class__.__name__))
		self.written += len(data)
		return Ok(len(data))

	def close(self) -> None:
		self._closed = True

	def __enter__(self) -> "OutputStream":
		return self

	def __exit__(
		self,
		type: type[BaseException] | None,
		value: BaseException | None,
		traceback: TracebackType | None,
	) -> None:
		self.close()


# -----------------------------------------------------------------------------
#
# OUTPARAM
#
# -----------------------------------------------------------------------------


class ResponseOutparam:
	"""A write-once slot for the response (or the error) of an exchange.
	Setting it consumes it: setting it again raises a `CommitError`."""

	__slots__ = ["transport", "_result"]

	def __init__(self, transport: Transport):
		self.transport: Transport = transport
		self._result: Result[OutgoingResponse, ErrorCode] | None = None

	@property
	def isResolved(self) -> bool:
		return self._result is not None

	@property
	def result(self) -> Result[OutgoingResponse, ErrorCode] | None:
		return self._result

	@classmethod
	def set(
		cls,
		param: "ResponseOutparam",
		response: Result[OutgoingResponse, ErrorCode],
	) -> None:
		if param._result is not None:
			raise CommitError("Response out-param was already set")
		if isinstance(response, Ok):
			if not isinstance(response.value, OutgoingResponse):
				raise CommitError(f"Expected an OutgoingResponse, got {response.value!r}")
			elif response.value.isCommitted:
				raise CommitError("Response was already committed through another out-param")
			# NOTE: The slot is consumed even if the transport fails
			param._result = response
			response.value._commit(param.transport)
		elif isinstance(response, Err):
			param._result = response
			try:
				param.transport.reject(response.value)
			except OSError as e:
				raise CommitError(f"Transport refused the error: {e}") from e
		else:
			raise CommitError(f"Expected Ok or Err, got {response!r}")


# EOF
