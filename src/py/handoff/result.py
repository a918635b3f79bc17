from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar, Union

__doc__ = """
Explicit success/failure values. Fallible resource operations return
a `Result` instead of raising, so that each stage of an exchange checks
what it got before proceeding.
"""

T = TypeVar("T")
E = TypeVar("E")


@dataclass(slots=True, frozen=True)
class Ok(Generic[T]):
	"""Wraps a successful value."""

	value: T

	def isOk(self) -> bool:
		return True


@dataclass(slots=True, frozen=True)
class Err(Generic[E]):
	"""Wraps a failure value."""

	value: E

	def isOk(self) -> bool:
		return False


Result: TypeAlias = Union[Ok[T], Err[E]]


# EOF
