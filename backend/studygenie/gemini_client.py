from __future__ import annotations
import asyncio
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple, Type

import httpx
from pydantic import BaseModel

from .data_uri import DATA_URI_RE
from .errors import ErrorKind, SchemaValidationError
from .prompts import PartKind, PromptPayload
from .results import Failure, InvocationResult, Success
from .schemas import json_schema, validate_output
from .settings import settings

logger = logging.getLogger(__name__)


class Modality(str, Enum):
	TEXT = "TEXT"
	IMAGE = "IMAGE"


@dataclass(frozen=True)
class InvokeOptions:
	response_modalities: Tuple[Modality, ...] = (Modality.TEXT,)
	# Ask the model to bind its answer to the output schema (JSON mode)
	structured: bool = True
	timeout: Optional[float] = None
	thinking_budget: Optional[int] = None


@dataclass(frozen=True)
class ModelReply:
	"""Unbound reply, returned when no output schema is given."""

	text: str
	images: Tuple[str, ...] = ()


class ModelClient(Protocol):
	async def invoke(
		self,
		model_id: str,
		payload: PromptPayload,
		output_schema: Optional[Type[BaseModel]],
		options: InvokeOptions = ...,
	) -> InvocationResult:
		...


# Provider error text that identifies the failure class
_RATE_LIMIT_SIGNALS = ("429", "quota", "resource_exhausted", "rate limit")
_TOO_LARGE_SIGNALS = ("token count exceeds", "maximum number of tokens", "exceeds the maximum", "context length")


def classify_error(message: str, status_code: Optional[int] = None) -> Tuple[ErrorKind, bool]:
	lowered = (message or "").lower()
	if status_code == 429 or any(s in lowered for s in _RATE_LIMIT_SIGNALS):
		return ErrorKind.RATE_LIMITED, False
	if status_code == 413 or any(s in lowered for s in _TOO_LARGE_SIGNALS):
		return ErrorKind.INPUT_TOO_LARGE, False
	if status_code in (502, 503, 504):
		return ErrorKind.TRANSIENT, True
	return ErrorKind.MODEL_ERROR, False


def extract_json(text: str) -> Any:
	"""Parse a JSON reply that may be wrapped in a ```json fence or surrounded by prose."""
	try:
		return json.loads(text)
	except ValueError:
		pass
	code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
	if code_block:
		try:
			return json.loads(code_block.group(1))
		except ValueError:
			pass
	for opener, closer in (("{", "}"), ("[", "]")):
		first = text.find(opener)
		last = text.rfind(closer)
		if first != -1 and last > first:
			try:
				return json.loads(text[first : last + 1])
			except ValueError:
				pass
	raise ValueError("reply is not valid JSON")


def _error_detail(r: httpx.Response) -> str:
	try:
		body = r.json()
		err = body.get("error") or {}
		return f"{err.get('status', '')} {err.get('message', '')}".strip() or r.text
	except Exception:
		return r.text


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		provider: Optional[str] = None,
		timeout: Optional[float] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.provider = provider or settings.gemini_provider
		self.timeout = timeout or settings.gemini_timeout_seconds
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or "https://generativelanguage.googleapis.com/v1beta/models"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

	def endpoint(self, model_id: str) -> str:
		return f"{self.base_url}/{model_id}:generateContent"

	def build_request(self, payload: PromptPayload, output_schema: Optional[Type[BaseModel]], options: InvokeOptions) -> Dict[str, Any]:
		parts: List[Dict[str, Any]] = []
		for part in payload.parts:
			if part.kind == PartKind.TEXT:
				parts.append({"text": part.content})
				continue
			match = DATA_URI_RE.match(part.uri)
			if match:
				parts.append({"inline_data": {"mime_type": match.group("mime"), "data": match.group("data")}})
			else:
				file_data: Dict[str, str] = {"file_uri": part.uri}
				if part.mime_type_hint:
					file_data["mime_type"] = part.mime_type_hint
				parts.append({"file_data": file_data})
		body: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
		if payload.system:
			body["systemInstruction"] = {"parts": [{"text": payload.system}]}
		generation: Dict[str, Any] = {}
		if Modality.IMAGE in options.response_modalities:
			generation["responseModalities"] = [m.value for m in options.response_modalities]
		elif output_schema is not None and options.structured:
			generation["responseMimeType"] = "application/json"
			generation["responseJsonSchema"] = json_schema(output_schema)
		if options.thinking_budget is not None:
			generation["thinkingConfig"] = {"thinkingBudget": int(options.thinking_budget)}
		if generation:
			body["generationConfig"] = generation
		return body

	async def invoke(
		self,
		model_id: str,
		payload: PromptPayload,
		output_schema: Optional[Type[BaseModel]],
		options: InvokeOptions = InvokeOptions(),
	) -> InvocationResult:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		body = self.build_request(payload, output_schema, options)
		deadline = options.timeout or self.timeout
		try:
			r = await asyncio.wait_for(
				self._client.post(self.endpoint(model_id), params=params, headers=headers, json=body),
				timeout=deadline,
			)
		except (asyncio.TimeoutError, httpx.TimeoutException):
			logger.warning("Gemini call to %s timed out after %ss", model_id, deadline)
			return Failure(ErrorKind.TRANSIENT, f"Gemini request timed out after {deadline}s", retryable=True)
		except httpx.RequestError as net_err:
			logger.warning("Gemini call to %s failed: %s", model_id, net_err)
			return Failure(ErrorKind.TRANSIENT, f"Gemini request failed: {net_err}", retryable=True)

		if r.status_code >= 400:
			detail = _error_detail(r)
			kind, retryable = classify_error(detail, r.status_code)
			logger.warning("Gemini call to %s rejected (%s, %s): %s", model_id, r.status_code, kind.value, detail[:300])
			return Failure(kind, f"Gemini request failed ({r.status_code}): {detail}", retryable=retryable)

		try:
			reply = self._read_reply(r.json())
		except ValueError as err:
			return Failure(ErrorKind.MODEL_ERROR, str(err))

		if output_schema is None:
			return Success(reply)
		try:
			data = extract_json(reply.text)
			return Success(validate_output(output_schema, data))
		except SchemaValidationError as err:
			return Failure(err.kind, err.message, field=err.field)
		except ValueError:
			return Failure(ErrorKind.MALFORMED_OUTPUT, f"Unexpected Gemini response, expected JSON: {reply.text[:500]}")

	def _read_reply(self, data: Dict[str, Any]) -> ModelReply:
		candidates = data.get("candidates") or []
		if not candidates:
			block = (data.get("promptFeedback") or {}).get("blockReason")
			if block:
				raise ValueError(f"Gemini blocked the prompt: {block}")
			raise ValueError("Gemini returned no candidates")
		parts = (candidates[0].get("content") or {}).get("parts") or []
		texts: List[str] = []
		images: List[str] = []
		for part in parts:
			if not isinstance(part, dict):
				continue
			if part.get("text"):
				texts.append(part["text"])
			inline = part.get("inlineData") or part.get("inline_data")
			if inline and inline.get("data"):
				mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
				images.append(f"data:{mime};base64,{inline['data']}")
		return ModelReply(text="".join(texts), images=tuple(images))

	async def aclose(self) -> None:
		await self._client.aclose()
