from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Type

import pytest
from pydantic import BaseModel

from studygenie.gemini_client import InvokeOptions, Modality, ModelReply
from studygenie.prompts import PartKind, PromptPayload
from studygenie.results import InvocationResult, Success


PDF_URI = "data:application/pdf;base64," + base64.b64encode(b"%PDF-1.4 notes").decode("ascii")
PNG_URI = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode("ascii")


def pytest_configure(config: pytest.Config) -> None:
	config.addinivalue_line("markers", "unit: Fast unit tests with stubbed model calls")


@dataclass
class Call:
	model_id: str
	payload: PromptPayload
	output_schema: Optional[Type[BaseModel]]
	options: InvokeOptions

	@property
	def text(self) -> str:
		return "".join(p.content for p in self.payload.parts if p.kind == PartKind.TEXT)

	@property
	def media(self) -> List[str]:
		return [p.uri for p in self.payload.parts if p.kind == PartKind.MEDIA]

	@property
	def wants_image(self) -> bool:
		return Modality.IMAGE in self.options.response_modalities


Responder = Callable[[Call], InvocationResult]


class StubModelClient:
	"""Records every invocation and answers through a responder function."""

	def __init__(self, responder: Optional[Responder] = None) -> None:
		self.calls: List[Call] = []
		self.responder = responder or (lambda call: Success(ModelReply(text="")))

	async def invoke(self, model_id, payload, output_schema, options=InvokeOptions()) -> InvocationResult:
		call = Call(model_id, payload, output_schema, options)
		self.calls.append(call)
		return self.responder(call)


def echo(result: Any) -> Responder:
	return lambda call: result


@pytest.fixture
def stub_client() -> Callable[..., StubModelClient]:
	def build(responder: Optional[Responder] = None) -> StubModelClient:
		return StubModelClient(responder)

	return build
