import asyncio
from typing import NamedTuple

from .handler import IncomingHandler
from .http.model import (
	CommitError,
	ErrorCode,
	IncomingRequest,
	OutgoingResponse,
	ResponseOutparam,
	Transport,
)
from .result import Err, Ok
from .utils.logging import event, exception, warning


class DispatchOptions(NamedTuple):
	logRequests: bool = True


class Dispatcher:
	"""Invokes a handler for each incoming request and makes sure the
	out-param it was given ends up resolved exactly once, whatever the
	handler does."""

	def __init__(
		self, handler: IncomingHandler, options: DispatchOptions = DispatchOptions()
	) -> None:
		self.handler: IncomingHandler = handler
		self.options: DispatchOptions = options

	def dispatch(
		self, request: IncomingRequest, transport: Transport
	) -> ResponseOutparam:
		responseOut = ResponseOutparam(transport)
		if self.options.logRequests:
			event(request.method, request.path)
		try:
			self.handler.handle(request, responseOut)
		except Exception as e:
			self.onHandlerException(e, request, responseOut)
		return self.ensureResolved(request, responseOut)

	async def adispatch(
		self, request: IncomingRequest, transport: Transport
	) -> ResponseOutparam:
		"""Asynchronous dispatch. When the task is cancelled, a committed
		response is aborted (otherwise the out-param gets an error) and the
		cancellation propagates."""
		responseOut = ResponseOutparam(transport)
		if self.options.logRequests:
			event(request.method, request.path)
		try:
			await self.handler.ahandle(request, responseOut)
		except asyncio.CancelledError:
			if responseOut.isResolved:
				self.abort(responseOut, "Dispatch cancelled")
			else:
				self.resolve(responseOut, ErrorCode.Internal("Dispatch cancelled"))
			raise
		except Exception as e:
			self.onHandlerException(e, request, responseOut)
		return self.ensureResolved(request, responseOut)

	def onHandlerException(
		self,
		e: Exception,
		request: IncomingRequest,
		responseOut: ResponseOutparam,
	) -> None:
		exception(e, f"Handler failed for {request.method} {request.path}")
		if responseOut.isResolved:
			# The peer already has the head, all we can do is drop the body
			self.abort(responseOut, f"Handler failed: {e}")
		else:
			self.resolve(responseOut, ErrorCode.Internal(f"Handler failed: {e}"))

	def ensureResolved(
		self, request: IncomingRequest, responseOut: ResponseOutparam
	) -> ResponseOutparam:
		if not responseOut.isResolved:
			warning(
				"Handler did not set a response",
				Method=request.method,
				Path=request.path,
			)
			self.resolve(responseOut, ErrorCode.Internal("Handler did not set a response"))
		return responseOut

	def resolve(self, responseOut: ResponseOutparam, error: ErrorCode) -> None:
		try:
			ResponseOutparam.set(responseOut, Err(error))
		except CommitError as e:
			exception(e, "Could not report the handler error")

	def abort(self, responseOut: ResponseOutparam, reason: str) -> None:
		result = responseOut.result
		if isinstance(result, Ok) and isinstance(result.value, OutgoingResponse):
			result.value.abort(reason)
		else:
			responseOut.transport.abort(reason)


# EOF
