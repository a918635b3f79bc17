import threading
from typing import BinaryIO

from .http.model import ErrorCode, Fields, Transport, headername
from .http.status import HTTP_STATUS
from .utils.io import EOL
from .utils.logging import debug, logged

# -----------------------------------------------------------------------------
#
# MEMORY
#
# -----------------------------------------------------------------------------


class MemoryTransport(Transport):
	"""Keeps everything the peer would receive in memory. Failures can be
	injected at every step, and flushes can be held back by a `gate` until
	it is set."""

	def __init__(
		self,
		*,
		failCommit: bool = False,
		failFlush: int | None = None,
		failFinish: bool = False,
		gate: threading.Event | None = None,
	) -> None:
		self.failCommit: bool = failCommit
		# Index of the flush call that fails, if any
		self.failFlush: int | None = failFlush
		self.failFinish: bool = failFinish
		self.gate: threading.Event | None = gate
		self.status: int | None = None
		self.headers: list[tuple[str, bytes]] | None = None
		self.error: ErrorCode | None = None
		self.flushes: list[bytes] = []
		self.flushCalls: int = 0
		self.trailers: list[tuple[str, bytes]] | None = None
		self.finished: bool = False
		self.aborted: str | None = None

	@property
	def isCommitted(self) -> bool:
		return self.status is not None

	@property
	def body(self) -> bytes:
		return b"".join(self.flushes)

	def commit(self, status: int, headers: Fields) -> None:
		if self.failCommit:
			raise ConnectionRefusedError("Peer refused the response")
		self.status = status
		self.headers = headers.entries()

	def reject(self, error: ErrorCode) -> None:
		self.error = error

	def flush(self, data: bytes) -> None:
		index = self.flushCalls
		self.flushCalls += 1
		if self.gate is not None:
			self.gate.wait()
		if self.aborted is not None:
			raise ConnectionAbortedError(f"Connection aborted: {self.aborted}")
		if self.failFlush is not None and index == self.failFlush:
			raise BrokenPipeError("Peer closed the connection")
		self.flushes.append(data)

	def finish(self, trailers: Fields | None) -> None:
		if self.failFinish:
			raise ConnectionResetError("Peer reset the connection")
		self.finished = True
		self.trailers = trailers.entries() if trailers is not None else None

	def abort(self, reason: str) -> None:
		self.aborted = reason


# -----------------------------------------------------------------------------
#
# STREAM
#
# -----------------------------------------------------------------------------


class StreamTransport(Transport):
	"""Writes an HTTP/1.1 response to a binary stream. Unless the response
	sets a `Content-Length`, the body uses chunked transfer encoding as
	its length is not known at commit time."""

	def __init__(self, io: BinaryIO, *, protocol: str = "HTTP/1.1") -> None:
		self.io: BinaryIO = io
		self.protocol: str = protocol
		self.chunked: bool = False
		self.aborted: bool = False

	def head(self, status: int, headers: Fields) -> bytes:
		"""Serializes the status line and headers."""
		lines: list[bytes] = [
			f"{self.protocol} {status} {HTTP_STATUS.get(status, 'Unknown status')}".encode(
				"ascii"
			)
		]
		lines += [
			headername(k).encode("ascii") + b": " + v
			for k, v in headers
			if not (self.chunked and k == "transfer-encoding")
		]
		if self.chunked:
			# Chunked must be the last coding, and appear once
			codings = [
				_.strip()
				for v in headers.get("Transfer-Encoding")
				for _ in v.split(b",")
				if _.strip() and _.strip().lower() != b"chunked"
			]
			lines.append(b"Transfer-Encoding: " + b", ".join(codings + [b"chunked"]))
		lines.append(b"")
		lines.append(b"")
		return EOL.join(lines)

	def commit(self, status: int, headers: Fields) -> None:
		self.chunked = not headers.has("Content-Length")
		self._send(self.head(status, headers))

	def reject(self, error: ErrorCode) -> None:
		message: bytes = f"{error.kind.name}: {error.message or 'no response'}".encode(
			"utf8"
		)
		self._send(
			EOL.join(
				[
					f"{self.protocol} 500 {HTTP_STATUS[500]}".encode("ascii"),
					b"Content-Type: text/plain",
					f"Content-Length: {len(message)}".encode("ascii"),
					b"Connection: close",
					b"",
					message,
				]
			)
		)

	def flush(self, data: bytes) -> None:
		if not data:
			# An empty chunk would terminate the body
			return
		logged(debug) and debug("Flushing body", Size=len(data), Chunked=self.chunked)
		self._send(
			f"{len(data):x}".encode("ascii") + EOL + data + EOL if self.chunked else data
		)

	def finish(self, trailers: Fields | None) -> None:
		if not self.chunked:
			if trailers:
				# Trailers can only follow a chunked body
				raise ConnectionError(
					f"Can't send {len(trailers)} trailer(s) after a body with a Content-Length"
				)
			return
		payload: bytes = b"0" + EOL
		for k, v in trailers or ():
			payload += headername(k).encode("ascii") + b": " + v + EOL
		self._send(payload + EOL)

	def abort(self, reason: str) -> None:
		self.aborted = True

	def _send(self, data: bytes) -> None:
		if self.aborted:
			raise ConnectionAbortedError("Connection was aborted")
		try:
			self.io.write(data)
			self.io.flush()
		except ValueError as e:
			# Writing to a closed file
			raise BrokenPipeError(str(e)) from e


# EOF
