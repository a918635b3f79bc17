from .result import Ok, Err, Result  # NOQA: F401
from .http.model import (  # NOQA: F401
	Fields,
	IncomingRequest,
	OutgoingResponse,
	OutgoingBody,
	OutputStream,
	ResponseOutparam,
	ErrorCode,
	ErrorKind,
	ExchangeError,
	ExchangeStage,
	Transport,
)
from .exchange import ResponseExchange, ExchangeReport, ExchangeStatus  # NOQA: F401
from .handler import IncomingHandler, MessageHandler, handler  # NOQA: F401
from .dispatcher import Dispatcher  # NOQA: F401
from .transport import MemoryTransport, StreamTransport  # NOQA: F401

# EOF
