DEFAULT_ENCODING: str = "utf8"
EOL: bytes = b"\r\n"


def asBytes(value: str | bytes | bytearray | None) -> bytes:
	if isinstance(value, bytes):
		return value
	elif isinstance(value, bytearray):
		return bytes(value)
	elif isinstance(value, str):
		return value.encode(DEFAULT_ENCODING)
	elif value is None:
		return b""
	else:
		raise ValueError(f"Expected bytes or str, got: {value!r}")


def chunks(data: bytes, size: int) -> list[bytes]:
	"""Splits `data` in consecutive slices of at most `size` bytes. An empty
	payload yields no chunk."""
	if size <= 0:
		raise ValueError(f"Chunk size must be positive, got: {size}")
	return [data[i : i + size] for i in range(0, len(data), size)]


# EOF
