import pytest

from handoff.config import FLUSH_LIMIT
from handoff.http.model import (
	BodyError,
	CommitError,
	ConstructionError,
	ErrorCode,
	ErrorKind,
	ExchangeStage,
	Fields,
	FinishError,
	HeaderError,
	OutgoingBody,
	OutgoingResponse,
	ResponseOutparam,
	StreamError,
	WriteError,
)
from handoff.result import Err, Ok
from handoff.transport import MemoryTransport


def test_result_values():
	assert Ok(1).isOk()
	assert not Err("nope").isOk()
	assert Ok(1) == Ok(1)
	assert Ok(1) != Err(1)


def test_fields_are_case_insensitive():
	res = Fields.FromList([("Content-Type", b"text/plain"), ("X-Tag", "a")])
	assert isinstance(res, Ok)
	fields = res.value
	assert fields.get("content-type") == [b"text/plain"]
	assert fields.first("CONTENT-TYPE") == b"text/plain"
	assert fields.has("x-tag")
	assert fields.get("x-tag") == [b"a"]
	assert len(fields) == 2


def test_fields_reject_invalid_entries():
	bad_name = Fields.FromList([("bad name", b"x")])
	assert isinstance(bad_name, Err)
	assert isinstance(bad_name.value, HeaderError)
	bad_value = Fields.FromList([("x-tag", b"a\r\nInjected: yes")])
	assert isinstance(bad_value, Err)
	assert isinstance(Fields.FromList([("", b"x")]), Err)
	assert isinstance(Fields.FromList([("naïve", b"x")]), Err)


def test_fields_set_and_delete():
	fields = Fields()
	fields.append("x-tag", b"a")
	fields.append("x-tag", b"b")
	assert fields.get("x-tag") == [b"a", b"b"]
	assert isinstance(fields.set("X-Tag", [b"c"]), Ok)
	assert fields.get("x-tag") == [b"c"]
	assert isinstance(fields.delete("x-tag"), Ok)
	assert not fields.has("x-tag")


def test_frozen_fields_are_immutable():
	fields = Fields().freeze()
	assert fields.isImmutable
	for res in (
		fields.append("x-tag", b"a"),
		fields.set("x-tag", [b"a"]),
		fields.delete("x-tag"),
	):
		assert isinstance(res, Err)
		assert isinstance(res.value, HeaderError)
	assert len(fields) == 0


def test_errors_know_their_stage():
	assert ConstructionError("x").stage is ExchangeStage.Construct
	assert not ConstructionError("x").isPostCommit
	assert not CommitError("x").isPostCommit
	assert BodyError("x").isPostCommit
	assert StreamError("x").stage is ExchangeStage.Flush
	assert FinishError("x").stage is ExchangeStage.Finish


def test_status_is_validated():
	response = OutgoingResponse(Fields())
	assert isinstance(response.setStatus(404), Ok)
	assert response.status == 404
	res = response.setStatus(42)
	assert isinstance(res, Err)
	assert isinstance(res.value, ConstructionError)
	assert response.status == 404


def test_outparam_is_set_once():
	transport = MemoryTransport()
	responseOut = ResponseOutparam(transport)
	response = OutgoingResponse(Fields())
	assert not responseOut.isResolved
	ResponseOutparam.set(responseOut, Ok(response))
	assert responseOut.isResolved
	assert responseOut.result == Ok(response)
	with pytest.raises(CommitError):
		ResponseOutparam.set(responseOut, Err(ErrorCode.Internal("again")))
	assert responseOut.result == Ok(response)
	assert transport.error is None


def test_outparam_error_is_rejected_to_transport():
	transport = MemoryTransport()
	responseOut = ResponseOutparam(transport)
	ResponseOutparam.set(responseOut, Err(ErrorCode.Internal("boom")))
	assert transport.error == ErrorCode(ErrorKind.InternalError, "boom")
	assert not transport.isCommitted


def test_outparam_rejects_non_results():
	responseOut = ResponseOutparam(MemoryTransport())
	with pytest.raises(CommitError):
		ResponseOutparam.set(responseOut, OutgoingResponse(Fields()))  # type: ignore
	with pytest.raises(CommitError):
		ResponseOutparam.set(responseOut, Ok("not a response"))  # type: ignore


def test_commit_freezes_metadata():
	transport = MemoryTransport()
	response = OutgoingResponse(Fields())
	ResponseOutparam.set(ResponseOutparam(transport), Ok(response))
	assert response.isCommitted
	assert response.headers.isImmutable
	assert isinstance(response.setStatus(500), Err)
	assert transport.status == 200
	assert transport.headers == []


def test_response_cannot_be_committed_twice():
	response = OutgoingResponse(Fields())
	ResponseOutparam.set(ResponseOutparam(MemoryTransport()), Ok(response))
	other = MemoryTransport()
	responseOut = ResponseOutparam(other)
	with pytest.raises(CommitError):
		ResponseOutparam.set(responseOut, Ok(response))
	# The slot is still free for a response of its own
	assert not responseOut.isResolved
	ResponseOutparam.set(responseOut, Err(ErrorCode.Internal("no response")))
	assert other.error == ErrorCode.Internal("no response")


def test_transport_refusing_commit_consumes_outparam():
	responseOut = ResponseOutparam(MemoryTransport(failCommit=True))
	with pytest.raises(CommitError):
		ResponseOutparam.set(responseOut, Ok(OutgoingResponse(Fields())))
	assert responseOut.isResolved


def test_body_is_taken_once():
	response = OutgoingResponse(Fields())
	first = response.body()
	assert isinstance(first, Ok)
	second = response.body()
	assert isinstance(second, Err)
	assert isinstance(second.value, BodyError)


def test_body_stream_is_taken_once():
	body = OutgoingBody(OutgoingResponse(Fields()))
	assert isinstance(body.write(), Ok)
	second = body.write()
	assert isinstance(second, Err)
	assert isinstance(second.value, WriteError)


def test_finish_requires_closed_stream():
	transport = MemoryTransport()
	response = OutgoingResponse(Fields())
	ResponseOutparam.set(ResponseOutparam(transport), Ok(response))
	body = response.body()
	assert isinstance(body, Ok)
	stream = body.value.write()
	assert isinstance(stream, Ok)
	res = OutgoingBody.finish(body.value)
	assert isinstance(res, Err)
	assert isinstance(res.value, FinishError)
	stream.value.close()
	assert isinstance(OutgoingBody.finish(body.value), Ok)
	assert transport.finished
	assert isinstance(OutgoingBody.finish(body.value), Err)
	assert isinstance(body.value.write(), Err)


def test_writes_before_commit_are_delivered_after_it():
	transport = MemoryTransport()
	response = OutgoingResponse(Fields())
	body = response.body()
	assert isinstance(body, Ok)
	stream = body.value.write()
	assert isinstance(stream, Ok)
	assert stream.value.blockingWriteAndFlush(b"early") == Ok(5)
	stream.value.close()
	assert isinstance(OutgoingBody.finish(body.value), Ok)
	assert transport.flushes == []
	assert not transport.finished
	ResponseOutparam.set(ResponseOutparam(transport), Ok(response))
	assert transport.flushes == [b"early"]
	assert transport.finished


def test_failed_flush_closes_stream():
	transport = MemoryTransport(failFlush=0)
	response = OutgoingResponse(Fields())
	ResponseOutparam.set(ResponseOutparam(transport), Ok(response))
	body = response.body()
	assert isinstance(body, Ok)
	stream = body.value.write()
	assert isinstance(stream, Ok)
	res = stream.value.blockingWriteAndFlush(b"data")
	assert isinstance(res, Err)
	assert not res.value.closed
	assert stream.value.isClosed
	again = stream.value.blockingWriteAndFlush(b"data")
	assert isinstance(again, Err)
	assert again.value.closed
	assert transport.flushCalls == 1
	assert stream.value.written == 0


def test_oversized_write_is_refused():
	transport = MemoryTransport()
	response = OutgoingResponse(Fields())
	ResponseOutparam.set(ResponseOutparam(transport), Ok(response))
	body = response.body()
	assert isinstance(body, Ok)
	stream = body.value.write()
	assert isinstance(stream, Ok)
	assert stream.value.checkWrite() == Ok(FLUSH_LIMIT)
	res = stream.value.blockingWriteAndFlush(b"x" * (FLUSH_LIMIT + 1))
	assert isinstance(res, Err)
	assert transport.flushCalls == 0


def test_aborted_response_refuses_body():
	transport = MemoryTransport()
	response = OutgoingResponse(Fields())
	ResponseOutparam.set(ResponseOutparam(transport), Ok(response))
	response.abort("gone")
	assert transport.aborted == "gone"
	assert isinstance(response.body(), Err)


# EOF
