from __future__ import annotations
import json
import re
from typing import Any, List

from ..gemini_client import ModelReply
from ..prompts import Media, Text, template
from ..schemas import (
	ExtractTextFromImageInput,
	ExtractTextFromImageOutput,
	ExtractTextFromPdfInput,
	ExtractTextFromPdfOutput,
)
from ..settings import settings
from .base import Flow, FlowSpec


IMAGE_TEMPLATE = template(
	"extractAndFormatTopicsPrompt",
	Text(
		"You are an intelligent text processing assistant. Extract the text from an image "
		"and format it into a list of study topics.\n\nImage for analysis:\n"
	),
	Media("image_data_uri"),
	Text(
		"Instructions:\n"
		"1. Extract all visible text from the image. This is 'extractedText'.\n"
		"2. From that text, identify distinct study topics or sub-topics.\n"
		'3. Split topics on commas (",") and dashes ("-"); "Algebra - Trigonometry" is two topics.\n'
		"4. Trim leading and trailing whitespace from each topic.\n"
		"5. Write the cleaned topics twice: 'commaSeparatedTopics' joined by \", \" and "
		"'newLineSeparatedTopics' with one topic per line.\n"
		"6. If no text is found, return empty strings for all fields.\n\n"
		"Respond ONLY with a JSON object with keys extractedText, commaSeparatedTopics, newLineSeparatedTopics."
	),
)

PDF_TEMPLATE = template(
	"extractTextFromPdfPrompt",
	Media("pdf_data_uri"),
	Text(
		"Extract all textual content from this PDF document. Prioritize the main body text. "
		"Respond with only the extracted text, not in JSON format. If no text is found, return an empty string."
	),
)

_TOPIC_SPLIT_RE = re.compile(r"[,\n\r•]|\s+-\s+|^\s*-\s*", re.MULTILINE)
_FENCE_RE = re.compile(r"^```[\w-]*\s*\n?([\s\S]*?)\n?```$")


def split_topics(text: str) -> List[str]:
	return [t.strip(" -\t") for t in _TOPIC_SPLIT_RE.split(text or "") if t and t.strip(" -\t")]


def strip_fence(text: str) -> str:
	stripped = (text or "").strip()
	match = _FENCE_RE.match(stripped)
	return match.group(1).strip() if match else stripped


class ExtractTextFromImageFlow(Flow):
	def postprocess(self, data: ExtractTextFromImageInput, payload: ExtractTextFromImageOutput) -> ExtractTextFromImageOutput:
		text = (payload.extracted_text or "").strip()
		comma = payload.comma_separated_topics.strip()
		lines = payload.new_line_separated_topics.strip()
		if text and not (comma and lines):
			topics = split_topics(comma or lines or text)
			comma = comma or ", ".join(topics)
			lines = lines or "\n".join(topics)
		return ExtractTextFromImageOutput(
			extracted_text=text,
			comma_separated_topics=comma,
			new_line_separated_topics=lines,
		)


class ExtractTextFromPdfFlow(Flow):
	def postprocess(self, data: ExtractTextFromPdfInput, payload: ModelReply) -> ExtractTextFromPdfOutput:
		text = strip_fence(payload.text)
		# The model sometimes answers with JSON despite the prompt
		try:
			parsed: Any = json.loads(text)
		except ValueError:
			parsed = None
		if isinstance(parsed, dict) and isinstance(parsed.get("extractedText"), str):
			text = parsed["extractedText"].strip()
		return ExtractTextFromPdfOutput(extracted_text=text)


extract_text_from_image = ExtractTextFromImageFlow(FlowSpec(
	name="extractTextFromImageFlow",
	input_schema=ExtractTextFromImageInput,
	output_schema=ExtractTextFromImageOutput,
	template=IMAGE_TEMPLATE,
	model_id=settings.gemini_model,
	reply_schema=ExtractTextFromImageOutput,
	media_check=("image_data_uri", "image/*"),
	thinking_budget=0,
))

extract_text_from_pdf = ExtractTextFromPdfFlow(FlowSpec(
	name="extractTextFromPdfFlow",
	input_schema=ExtractTextFromPdfInput,
	output_schema=ExtractTextFromPdfOutput,
	template=PDF_TEMPLATE,
	model_id=settings.gemini_model,
	media_check=("pdf_data_uri", "application/pdf"),
	thinking_budget=0,
))
