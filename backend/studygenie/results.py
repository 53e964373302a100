from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

from .errors import ErrorKind, FlowError


T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
	payload: T

	ok = True


@dataclass(frozen=True)
class Failure:
	kind: ErrorKind
	message: str
	retryable: bool = False
	field: Optional[str] = None

	ok = False

	@classmethod
	def from_error(cls, err: FlowError) -> "Failure":
		return cls(kind=err.kind, message=err.message, retryable=err.retryable, field=err.field)


# Outcome of one model call, and of one flow run after post-processing
InvocationResult = Union[Success[Any], Failure]
FlowResult = Union[Success[Any], Failure]


@dataclass(frozen=True)
class ItemOutcome(Generic[T]):
	"""Per-item result of a fan-out; the caller decides what a failed item means."""

	key: str
	ok: bool
	value: Optional[T] = None
	reason: Optional[str] = None
