import asyncio
from enum import Enum
from typing import Any, Iterable, NamedTuple

from .config import FLUSH_LIMIT, MESSAGE
from .http.model import (
	BodyError,
	CommitError,
	ConstructionError,
	ErrorCode,
	ExchangeError,
	ExchangeStage,
	Fields,
	HeaderError,
	IncomingRequest,
	OutgoingBody,
	OutgoingResponse,
	OutputStream,
	ResponseOutparam,
)
from .result import Err, Ok, Result
from .utils.io import asBytes, chunks
from .utils.logging import error, event, warning

__doc__ = """
The exchange runs the fixed pipeline that delivers one response:

1. *construct* the response, a failure is reported through the out-param;
2. *commit* it to the out-param, after which the peer sees status and headers;
3. *acquire* the body channel;
4. *write and flush* the payload, then finish the body.

The out-param is resolved exactly once, before any body byte is guaranteed
to be written. Failures past the commit can't reach the peer anymore: they
end the exchange, are logged and reported, but are never raised.
"""

THeaders = Iterable[tuple[str, bytes | str]]


class ExchangeStatus(Enum):
	"""How an exchange ended."""

	Complete = 0
	# Committed, but the body was not (fully) delivered
	EmptyBody = 10
	WriteDenied = 11
	FlushFailed = 12
	FinishFailed = 13
	# Not committed, the out-param carries an error or could not be set
	Rejected = 20
	CommitFailed = 21


class ExchangeReport(NamedTuple):
	status: ExchangeStatus
	written: int = 0
	error: ExchangeError | None = None

	@property
	def stage(self) -> ExchangeStage | None:
		return self.error.stage if self.error else None

	@property
	def isCommitted(self) -> bool:
		return self.status not in (ExchangeStatus.Rejected, ExchangeStatus.CommitFailed)

	@property
	def isDegraded(self) -> bool:
		return self.isCommitted and self.status is not ExchangeStatus.Complete


# Maps post-commit failure stages to the status they end the exchange with
DEGRADED: dict[ExchangeStage, ExchangeStatus] = {
	ExchangeStage.Body: ExchangeStatus.EmptyBody,
	ExchangeStage.Write: ExchangeStatus.WriteDenied,
	ExchangeStage.Flush: ExchangeStatus.FlushFailed,
	ExchangeStage.Finish: ExchangeStatus.FinishFailed,
}


class ResponseExchange:
	"""Delivers `payload` as the response of an exchange. The same instance
	can run any number of exchanges, as all the per-exchange state lives in
	the response objects."""

	__slots__ = ["payload", "status", "headers", "trailers"]

	def __init__(
		self,
		payload: bytes | str = MESSAGE,
		*,
		status: int = 200,
		headers: THeaders | None = None,
		contentType: str | None = None,
		trailers: THeaders | None = None,
	):
		self.payload: bytes = asBytes(payload)
		self.status: int = status
		self.headers: list[tuple[str, bytes | str]] = list(headers or ())
		if contentType is not None:
			self.headers.append(("content-type", contentType))
		self.trailers: list[tuple[str, bytes | str]] | None = (
			None if trailers is None else list(trailers)
		)

	# =========================================================================
	# STAGES
	# =========================================================================

	def construct(self) -> Result[OutgoingResponse, ConstructionError]:
		"""Stage 1: builds the response, without any I/O."""
		fields = Fields.FromList(self.headers)
		if isinstance(fields, Err):
			return Err(ConstructionError(f"Invalid headers: {fields.value.message}"))
		if isinstance(trailers := self._trailers(), Err):
			return Err(ConstructionError(f"Invalid trailers: {trailers.value.message}"))
		response = OutgoingResponse(fields.value)
		if isinstance(res := response.setStatus(self.status), Err):
			return res
		return Ok(response)

	def commit(
		self,
		responseOut: ResponseOutparam,
		response: Result[OutgoingResponse, ErrorCode],
	) -> Result[None, CommitError]:
		"""Stage 2: resolves the out-param with the response, or with the
		error that prevented building it."""
		try:
			ResponseOutparam.set(responseOut, response)
		except CommitError as e:
			return Err(e)
		return Ok(None)

	def acquire(self, response: OutgoingResponse) -> Result[OutgoingBody, BodyError]:
		"""Stage 3: takes the body channel of the committed response."""
		return response.body()

	def prepare(
		self, responseOut: ResponseOutparam
	) -> tuple[OutgoingBody, OutputStream] | ExchangeReport:
		"""Runs the stages up to the write permission, returning the body
		and its stream, or the report of the exchange when it ends early."""
		built = self.construct()
		if isinstance(built, Err):
			error(
				"Response construction failed",
				"CONSTRUCT",
				Reason=built.value.message,
			)
			rejected = self.commit(
				responseOut, Err(ErrorCode.Internal(built.value.message))
			)
			if isinstance(rejected, Err):
				return self.fail(rejected.value)
			return ExchangeReport(ExchangeStatus.Rejected, error=built.value)
		response: OutgoingResponse = built.value
		committed = self.commit(responseOut, Ok(response))
		if isinstance(committed, Err):
			return self.fail(committed.value)
		event("ExchangeCommitted", response.status, Headers=len(response.headers))
		# From here on, failures can only be logged
		body = self.acquire(response)
		if isinstance(body, Err):
			return self.degrade(body.value)
		stream = body.value.write()
		if isinstance(stream, Err):
			return self.degrade(stream.value)
		return body.value, stream.value

	def finish(self, body: OutgoingBody) -> ExchangeReport:
		"""Completes the body once its stream is closed."""
		trailers = self._trailers()
		finished = OutgoingBody.finish(
			body, trailers.value if isinstance(trailers, Ok) else None
		)
		if isinstance(finished, Err):
			return self.degrade(finished.value, body.written)
		event("ExchangeComplete", body.written)
		return ExchangeReport(ExchangeStatus.Complete, body.written)

	# =========================================================================
	# API
	# =========================================================================

	def run(
		self, request: IncomingRequest | Any, responseOut: ResponseOutparam
	) -> ExchangeReport:
		"""Runs the whole exchange, blocking on each flush. Nothing is raised
		past the commit, the returned report tells how it ended."""
		prepared = self.prepare(responseOut)
		if isinstance(prepared, ExchangeReport):
			return prepared
		body, stream = prepared
		with stream:
			for chunk in chunks(self.payload, FLUSH_LIMIT):
				res = stream.blockingWriteAndFlush(chunk)
				if isinstance(res, Err):
					return self.degrade(res.value, stream.written)
		return self.finish(body)

	async def arun(
		self, request: IncomingRequest | Any, responseOut: ResponseOutparam
	) -> ExchangeReport:
		"""Like `run`, with each blocking flush moved to a worker thread so
		that it is the only point where the task yields. Cancelling the task
		during a flush aborts the exchange, dropping the connection."""
		prepared = self.prepare(responseOut)
		if isinstance(prepared, ExchangeReport):
			return prepared
		body, stream = prepared
		with stream:
			for chunk in chunks(self.payload, FLUSH_LIMIT):
				try:
					res = await asyncio.to_thread(stream.blockingWriteAndFlush, chunk)
				except asyncio.CancelledError:
					warning(
						"Exchange cancelled during flush",
						Written=stream.written,
						Size=len(self.payload),
					)
					body.response.abort("Exchange cancelled")
					raise
				if isinstance(res, Err):
					return self.degrade(res.value, stream.written)
		return self.finish(body)

	# =========================================================================
	# HELPERS
	# =========================================================================

	def fail(self, err: CommitError) -> ExchangeReport:
		error("Response commit failed", "COMMIT", Reason=err.message)
		return ExchangeReport(ExchangeStatus.CommitFailed, error=err)

	def degrade(self, err: ExchangeError, written: int = 0) -> ExchangeReport:
		status = DEGRADED[err.stage]
		warning(
			"Response body not delivered after commit",
			Status=status.name,
			Stage=err.stage.name,
			Written=written,
			Size=len(self.payload),
			Reason=err.message,
		)
		return ExchangeReport(status, written, err)

	def _trailers(self) -> Result[Fields | None, HeaderError]:
		return Ok(None) if self.trailers is None else Fields.FromList(self.trailers)


# EOF
