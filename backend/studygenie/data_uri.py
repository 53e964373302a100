from __future__ import annotations
import base64
import binascii
import re
from dataclasses import dataclass
from typing import Optional


DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)(?:;[\w.+-]+=[\w.+-]+)*;base64,(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True)
class UploadedFile:
	filename: str
	content_type: str
	content: bytes


def to_data_uri(content: bytes, mime_type: str) -> str:
	return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


def file_to_data_uri(upload: UploadedFile) -> str:
	return to_data_uri(upload.content, upload.content_type or "application/octet-stream")


def mime_type_of(uri: str) -> Optional[str]:
	match = DATA_URI_RE.match(uri or "")
	return match.group("mime").lower() if match else None


def is_media_reference(uri: str) -> bool:
	return mime_type_of(uri) is not None or (uri or "").startswith("https://")


def matches_family(mime_type: Optional[str], family: str) -> bool:
	"""`family` is either an exact type ("application/pdf") or a wildcard ("image/*")."""
	if not mime_type:
		return False
	mime_type = mime_type.lower()
	if family.endswith("/*"):
		return mime_type.startswith(family[:-1])
	return mime_type == family


def decode(uri: str) -> bytes:
	match = DATA_URI_RE.match(uri or "")
	if not match:
		raise ValueError("not a base64 data URI")
	try:
		return base64.b64decode(match.group("data"), validate=True)
	except binascii.Error as err:
		raise ValueError(f"invalid base64 payload: {err}") from err


def summarize(uri: str) -> str:
	# For logs: never the payload itself
	mime = mime_type_of(uri)
	if mime:
		return f"<{mime} data URI, {len(uri)} chars>"
	return uri[:80]
