"""Typed prompt templates.

A template is a closed list of segments. Rendering binds each slot to a field
of the flow's validated input and produces a PromptPayload: TEXT parts for the
written prompt and MEDIA parts for images or documents, in template order.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel

from .data_uri import mime_type_of
from .errors import TemplateError


class PartKind(str, Enum):
	TEXT = "TEXT"
	MEDIA = "MEDIA"


@dataclass(frozen=True)
class PromptPart:
	kind: PartKind
	content: str = ""
	mime_type_hint: str = ""
	uri: str = ""

	@classmethod
	def text(cls, content: str) -> "PromptPart":
		return cls(PartKind.TEXT, content=content)

	@classmethod
	def media(cls, uri: str) -> "PromptPart":
		return cls(PartKind.MEDIA, mime_type_hint=media_mime_type(uri), uri=uri)


@dataclass(frozen=True)
class PromptPayload:
	parts: Tuple[PromptPart, ...]
	system: Optional[str] = None

	def __post_init__(self) -> None:
		if not self.parts:
			raise ValueError("a prompt payload needs at least one part")

	def size(self) -> int:
		return sum(len(p.content) + len(p.uri) for p in self.parts)


def media_mime_type(uri: str) -> str:
	mime = mime_type_of(uri)
	if mime:
		return mime
	if uri.startswith("https://"):
		return ""
	raise TemplateError(f"media value must be a base64 data URI or an https URL, got {uri[:32]!r}")


# ---- template segments ----

@dataclass(frozen=True)
class Text:
	value: str


@dataclass(frozen=True)
class Slot:
	name: str


@dataclass(frozen=True)
class ListSlot:
	"""A list field written out as "a, b, c" or as one "- item" line per element."""

	name: str
	style: str = "comma"


@dataclass(frozen=True)
class Media:
	name: str


@dataclass(frozen=True)
class EachMedia:
	name: str


@dataclass(frozen=True)
class IfPresent:
	name: str
	body: Tuple["Segment", ...]


Segment = Union[Text, Slot, ListSlot, Media, EachMedia, IfPresent]


@dataclass(frozen=True)
class PromptTemplate:
	name: str
	segments: Tuple[Segment, ...]
	system: Optional[str] = None

	def slots(self) -> List[str]:
		return list(_slot_names(self.segments))


def _slot_names(segments: Iterable[Segment]) -> Iterable[str]:
	for seg in segments:
		if isinstance(seg, IfPresent):
			yield seg.name
			yield from _slot_names(seg.body)
		elif not isinstance(seg, Text):
			yield seg.name


def template(name: str, *segments: Segment, system: Optional[str] = None) -> PromptTemplate:
	return PromptTemplate(name=name, segments=tuple(segments), system=system)


def if_present(name: str, *body: Segment) -> IfPresent:
	return IfPresent(name=name, body=tuple(body))


# ---- rendering ----

def _format_value(value: Any) -> str:
	if isinstance(value, float) and value.is_integer():
		return str(int(value))
	return str(value)


def _format_list(values: Sequence[Any], style: str) -> str:
	items = [_format_value(v) for v in values]
	if style == "bullets":
		return "\n".join(f"- {item}" for item in items)
	return ", ".join(items)


def _lookup(values: Mapping[str, Any], name: str, template_name: str) -> Any:
	if name not in values:
		raise TemplateError(f"template '{template_name}' references '{name}' which the flow input does not define")
	return values[name]


def _is_present(value: Any) -> bool:
	if value is None:
		return False
	if isinstance(value, (str, list, tuple)):
		return len(value) > 0
	return True


class _Builder:
	def __init__(self) -> None:
		self.parts: List[PromptPart] = []
		self._text: List[str] = []

	def text(self, value: str) -> None:
		self._text.append(value)

	def media(self, uri: str) -> None:
		self._flush()
		self.parts.append(PromptPart.media(uri))

	def _flush(self) -> None:
		joined = "".join(self._text)
		self._text = []
		if joined.strip():
			self.parts.append(PromptPart.text(joined))

	def build(self) -> List[PromptPart]:
		self._flush()
		return self.parts


def _render_into(builder: _Builder, segments: Iterable[Segment], values: Mapping[str, Any], template_name: str) -> None:
	for seg in segments:
		if isinstance(seg, Text):
			builder.text(seg.value)
		elif isinstance(seg, Slot):
			builder.text(_format_value(_lookup(values, seg.name, template_name)))
		elif isinstance(seg, ListSlot):
			value = _lookup(values, seg.name, template_name) or []
			builder.text(_format_list(value, seg.style))
		elif isinstance(seg, Media):
			builder.media(_lookup(values, seg.name, template_name))
		elif isinstance(seg, EachMedia):
			for uri in _lookup(values, seg.name, template_name) or []:
				builder.media(uri)
		elif isinstance(seg, IfPresent):
			if _is_present(_lookup(values, seg.name, template_name)):
				_render_into(builder, seg.body, values, template_name)
		else:
			raise TemplateError(f"unknown segment {seg!r} in template '{template_name}'")


def render(tmpl: PromptTemplate, data: Union[BaseModel, Mapping[str, Any]], **extra: Any) -> PromptPayload:
	"""Bind a validated flow input (plus any derived values) to a template."""
	values = dict(data.model_dump() if isinstance(data, BaseModel) else data)
	values.update(extra)
	builder = _Builder()
	_render_into(builder, tmpl.segments, values, tmpl.name)
	parts = builder.build()
	if not parts:
		raise TemplateError(f"template '{tmpl.name}' rendered an empty prompt")
	return PromptPayload(parts=tuple(parts), system=tmpl.system)
