from abc import ABC, abstractmethod
from functools import update_wrapper
from typing import Callable

from mypy_extensions import mypyc_attr

from .config import MESSAGE
from .exchange import ExchangeReport, ResponseExchange
from .http.model import IncomingRequest, ResponseOutparam

# NOTE: Handlers are meant to be subclassed by user code, which stays
# interpreted when the package is compiled with MyPyC.


@mypyc_attr(allow_interpreted_subclasses=True)
class IncomingHandler(ABC):
	"""Handles an incoming request by resolving the given out-param, then
	streaming the body of the response."""

	@abstractmethod
	def handle(self, request: IncomingRequest, responseOut: ResponseOutparam) -> None:
		...

	async def ahandle(
		self, request: IncomingRequest, responseOut: ResponseOutparam
	) -> None:
		self.handle(request, responseOut)


@mypyc_attr(allow_interpreted_subclasses=True)
class ExchangeHandler(IncomingHandler):
	"""Answers requests with the exchange returned by `exchange`, keeping
	the report of the last one."""

	def __init__(self) -> None:
		self.report: ExchangeReport | None = None

	@abstractmethod
	def exchange(self, request: IncomingRequest) -> ResponseExchange: ...

	def handle(self, request: IncomingRequest, responseOut: ResponseOutparam) -> None:
		self.report = self.exchange(request).run(request, responseOut)

	async def ahandle(
		self, request: IncomingRequest, responseOut: ResponseOutparam
	) -> None:
		self.report = await self.exchange(request).arun(request, responseOut)


class MessageHandler(ExchangeHandler):
	"""Responds to every request with the same message."""

	def __init__(
		self,
		message: bytes | str = MESSAGE,
		*,
		status: int = 200,
		contentType: str | None = None,
	) -> None:
		super().__init__()
		self._exchange: ResponseExchange = ResponseExchange(
			message, status=status, contentType=contentType
		)

	def exchange(self, request: IncomingRequest) -> ResponseExchange:
		return self._exchange


TResponder = Callable[[IncomingRequest], ResponseExchange | bytes | str]


class FunctionHandler(ExchangeHandler):
	def __init__(self, responder: TResponder) -> None:
		super().__init__()
		self.responder: TResponder = responder

	def exchange(self, request: IncomingRequest) -> ResponseExchange:
		r = self.responder(request)
		return r if isinstance(r, ResponseExchange) else ResponseExchange(r)


def handler(responder: TResponder) -> FunctionHandler:
	"""Decorates a function taking a request and returning a response
	exchange (or just a payload) as an incoming handler."""
	h = FunctionHandler(responder)
	update_wrapper(h, responder)
	return h


# EOF
