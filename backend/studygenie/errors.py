from __future__ import annotations
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
	INVALID_INPUT = "INVALID_INPUT"
	MALFORMED_OUTPUT = "MALFORMED_OUTPUT"
	RATE_LIMITED = "RATE_LIMITED"
	INPUT_TOO_LARGE = "INPUT_TOO_LARGE"
	TRANSIENT = "TRANSIENT"
	MODEL_ERROR = "MODEL_ERROR"


class FlowError(Exception):
	"""A classified failure raised inside a flow and turned into a Failure result at its boundary."""

	def __init__(self, kind: ErrorKind, message: str, *, retryable: bool = False, field: Optional[str] = None) -> None:
		super().__init__(message)
		self.kind = kind
		self.message = message
		self.retryable = retryable
		self.field = field


class SchemaValidationError(FlowError):
	pass


class TemplateError(RuntimeError):
	"""A prompt template references a slot its flow input does not declare."""
