from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple, Type

from pydantic import BaseModel

from ..data_uri import matches_family, mime_type_of
from ..errors import ErrorKind, FlowError, TemplateError
from ..gemini_client import InvokeOptions, Modality, ModelClient
from ..prompts import PromptPayload, PromptTemplate, render
from ..results import Failure, FlowResult, Success
from ..schemas import validate_input, validate_output

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
	PENDING = "PENDING"
	VALIDATING = "VALIDATING"
	INVOKING = "INVOKING"
	SUCCEEDED = "SUCCEEDED"
	FAILED = "FAILED"


@dataclass(frozen=True)
class FlowSpec:
	name: str
	input_schema: Type[BaseModel]
	output_schema: Type[BaseModel]
	template: PromptTemplate
	model_id: str
	modalities: FrozenSet[Modality] = frozenset({Modality.TEXT})
	# Schema the model answers with; None means an unbound text/media reply
	reply_schema: Optional[Type[BaseModel]] = None
	# Template slots filled by the flow rather than by an input field
	derived_slots: FrozenSet[str] = frozenset()
	# (input field, MIME family) checked before anything is sent
	media_check: Optional[Tuple[str, str]] = None
	thinking_budget: Optional[int] = None

	def __post_init__(self) -> None:
		known = set(self.input_schema.model_fields) | set(self.derived_slots)
		missing = [s for s in self.template.slots() if s not in known]
		if missing:
			raise TemplateError(f"flow '{self.name}' template uses undeclared slots: {', '.join(missing)}")

	def invoke_options(self, timeout: Optional[float] = None) -> InvokeOptions:
		order = [m for m in (Modality.TEXT, Modality.IMAGE) if m in self.modalities]
		return InvokeOptions(
			response_modalities=tuple(order),
			structured=self.reply_schema is not None,
			timeout=timeout,
			thinking_budget=self.thinking_budget,
		)


class Flow:
	"""Runs one FlowSpec end to end: validate, render, invoke once, post-process.

	Subclasses override `derive` to supply derived template slots and
	`postprocess` to turn the model payload into the flow's output model.
	`run` never raises for user or model failures; it returns a Failure.
	"""

	spec: FlowSpec

	def __init__(self, spec: FlowSpec) -> None:
		self.spec = spec

	@property
	def name(self) -> str:
		return self.spec.name

	def derive(self, data: Any) -> Dict[str, Any]:
		return {}

	def postprocess(self, data: Any, payload: Any) -> BaseModel:
		return payload

	def check_media(self, data: Any) -> None:
		if self.spec.media_check is None:
			return
		field_name, family = self.spec.media_check
		uri = getattr(data, field_name)
		mime = mime_type_of(uri)
		if not matches_family(mime, family):
			kind = "a PDF document" if family == "application/pdf" else f"a {family.split('/')[0]} file"
			raise FlowError(
				ErrorKind.INVALID_INPUT,
				f"Expected {kind} as a base64 data URI, got {mime or 'an unrecognised value'}.",
				field=self.spec.input_schema.model_fields[field_name].alias or field_name,
			)

	def build_prompt(self, data: Any) -> PromptPayload:
		return render(self.spec.template, data, **self.derive(data))

	async def run(self, client: ModelClient, raw_input: Any, *, timeout: Optional[float] = None) -> FlowResult:
		state = FlowState.PENDING
		logger.debug("flow %s %s", self.name, state.value)
		try:
			state = FlowState.VALIDATING
			data = validate_input(self.spec.input_schema, raw_input)
			self.check_media(data)
			payload = self.build_prompt(data)
		except FlowError as err:
			logger.info("flow %s rejected input (%s): %s", self.name, err.field, err.message)
			return Failure.from_error(err)

		state = FlowState.INVOKING
		try:
			result = await client.invoke(self.spec.model_id, payload, self.spec.reply_schema, self.spec.invoke_options(timeout))
		except Exception as err:
			logger.exception("flow %s: model client raised", self.name)
			return Failure(ErrorKind.MODEL_ERROR, f"Model call failed: {err}")
		if not result.ok:
			logger.warning("flow %s %s: %s %s", self.name, FlowState.FAILED.value, result.kind.value, result.message[:300])
			return result

		try:
			output = self.postprocess(data, result.payload)
			if not isinstance(output, self.spec.output_schema):
				output = validate_output(self.spec.output_schema, output)
		except FlowError as err:
			logger.warning("flow %s %s: %s %s", self.name, FlowState.FAILED.value, err.kind.value, err.message)
			return Failure.from_error(err)
		state = FlowState.SUCCEEDED
		logger.info("flow %s %s", self.name, state.value)
		return Success(output)
