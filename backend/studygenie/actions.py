from __future__ import annotations
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import Field

from .data_uri import UploadedFile, file_to_data_uri, matches_family, summarize
from .errors import ErrorKind, SchemaValidationError
from .flows.base import Flow
from .flows.extract_text import extract_text_from_image, extract_text_from_pdf
from .flows.key_points import generate_key_points
from .flows.quiz import create_quiz_from_notes
from .flows.resources import suggest_learning_resources
from .flows.study_schedule import generate_study_schedule
from .flows.topic_image import generate_topic_image
from .gemini_client import ModelClient
from .results import Failure, FlowResult, ItemOutcome
from .schemas import (
	CamelModel,
	CreateQuizFromNotesOutput,
	GenerateKeyPointsOutput,
	GenerateStudyScheduleInput,
	GenerateStudyScheduleOutput,
	SuggestLearningResourcesOutput,
	validate_input,
)
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


DEFAULT_TOPICS = ["General Studies"]
DEFAULT_SUBJECT = "General Studies"
DEFAULT_RESOURCE_TOPICS = ["general knowledge"]

PDF_UPLOAD_REQUIRED = "Please upload a PDF file."
IMAGE_UPLOAD_REQUIRED = "Please upload an image file."
EMPTY_PDF_TEXT = "Could not extract any text from the provided PDF. Please ensure it's a valid, text-based PDF."

# User-facing guidance for remote limits, per action
GUIDANCE: Dict[str, Dict[ErrorKind, str]] = {
	"quiz": {
		ErrorKind.RATE_LIMITED: "Quiz generation failed due to API rate limits. Please try again later or with shorter notes.",
		ErrorKind.INPUT_TOO_LARGE: "Your notes are too long for the AI to process. Please shorten them and try again.",
	},
	"key_points": {
		ErrorKind.RATE_LIMITED: "Key point generation failed due to API rate limits. Please try again later.",
		ErrorKind.INPUT_TOO_LARGE: "Your answer content is too long for the AI to process. Please shorten it and try again.",
	},
	"study_plan": {
		ErrorKind.RATE_LIMITED: "Study plan generation failed due to API rate limits. Please try again later.",
		ErrorKind.INPUT_TOO_LARGE: "Your topics are too long for the AI to process. Please shorten them and try again.",
	},
	"extract": {
		ErrorKind.RATE_LIMITED: "Text extraction failed due to API rate limits. Please try again later.",
		ErrorKind.INPUT_TOO_LARGE: "This file is too large for the AI to process. Please upload a smaller file.",
	},
}


# ---- request / response envelopes ----

class SubjectEntry(CamelModel):
	name: str
	# Manually entered topics or OCR output, as one block of text
	topics: str = ""


class StudyPlanRequest(CamelModel):
	subjects: List[SubjectEntry]
	exam_date: str
	start_date: str
	available_study_hours_per_day: float
	# Supplementary topic images, already encoded as data URIs
	topic_images: List[str] = Field(default_factory=list)


class StudyPlanResponse(CamelModel):
	schedule: Optional[GenerateStudyScheduleOutput] = None
	resources: Optional[SuggestLearningResourcesOutput] = None
	topic_images: List[str] = Field(default_factory=list)
	error: Optional[str] = None


class TopicExtractionResponse(CamelModel):
	extracted_text: Optional[str] = None
	comma_separated_topics: Optional[str] = None
	new_line_separated_topics: Optional[str] = None
	error: Optional[str] = None


class PdfTextResponse(CamelModel):
	extracted_text: Optional[str] = None
	error: Optional[str] = None


class QuizResponse(CamelModel):
	quiz_data: Optional[CreateQuizFromNotesOutput] = None
	error: Optional[str] = None


class KeyPointsResponse(CamelModel):
	key_points_data: Optional[GenerateKeyPointsOutput] = None
	error: Optional[str] = None


def error_message(failure: Failure, action: str) -> str:
	guidance = GUIDANCE.get(action, {}).get(failure.kind)
	if guidance:
		return guidance
	return failure.message or "The request failed."


def unique_topics(topics: Sequence[str]) -> List[str]:
	"""Exact-match de-duplication, first occurrence wins."""
	seen = set()
	ordered: List[str] = []
	for topic in topics:
		if topic not in seen:
			seen.add(topic)
			ordered.append(topic)
	return ordered


class ActionGateway:
	def __init__(self, client: ModelClient, config: Optional[Settings] = None) -> None:
		self.client = client
		self.config = config or default_settings

	async def _run(self, flow: Flow, data: Any, *, timeout: Optional[float] = None) -> FlowResult:
		# Only TRANSIENT failures are retried
		attempts = 1 + max(0, self.config.transient_retry_attempts)
		for attempt in range(attempts):
			result = await flow.run(self.client, data, timeout=timeout)
			if result.ok or result.kind != ErrorKind.TRANSIENT or attempt == attempts - 1:
				return result
			delay = self.config.transient_retry_backoff_seconds * (2 ** attempt)
			logger.info("retrying %s after transient failure in %.2fs: %s", flow.name, delay, result.message)
			await asyncio.sleep(delay)
		return result

	# ---- topic images ----

	async def generate_topic_images(self, topics: Sequence[str], *, timeout: Optional[float] = None) -> List[ItemOutcome[str]]:
		limit = max(1, self.config.study_plan_image_concurrency)
		semaphore = asyncio.Semaphore(limit)
		max_chars = self.config.topic_image_max_chars

		async def one(topic: str) -> ItemOutcome[str]:
			text = topic[:max_chars] + "..." if len(topic) > max_chars else topic
			async with semaphore:
				result = await self._run(generate_topic_image, {"topicText": text}, timeout=timeout)
			if result.ok:
				return ItemOutcome(key=topic, ok=True, value=result.payload.image_data_uri)
			logger.warning("topic image failed for %r: %s", topic[:60], result.message)
			return ItemOutcome(key=topic, ok=False, reason=result.message)

		return list(await asyncio.gather(*(one(t) for t in unique_topics(topics))))

	# ---- study plan ----

	async def handle_generate_study_plan(
		self,
		request: StudyPlanRequest,
		uploads: Sequence[UploadedFile] = (),
		*,
		timeout: Optional[float] = None,
	) -> StudyPlanResponse:
		try:
			return await self._generate_study_plan(request, uploads, timeout)
		except Exception:
			logger.exception("Error generating study plan")
			return StudyPlanResponse(error="Failed to generate study plan.")

	async def _generate_study_plan(self, request: StudyPlanRequest, uploads: Sequence[UploadedFile], timeout: Optional[float]) -> StudyPlanResponse:
		subject_names = [s.name.strip() for s in request.subjects if s.name and s.name.strip()]
		topic_texts = [s.topics.strip() for s in request.subjects if s.topics and s.topics.strip()]

		supplementary = list(request.topic_images)
		for upload in uploads:
			if not matches_family(upload.content_type, "image/*"):
				return StudyPlanResponse(error=f"{IMAGE_UPLOAD_REQUIRED} '{upload.filename}' is {upload.content_type or 'of unknown type'}.")
			supplementary.append(file_to_data_uri(upload))

		schedule_input: Dict[str, Any] = {
			"subjects": subject_names,
			"topics": topic_texts or DEFAULT_TOPICS,
			"examDate": request.exam_date,
			"startDate": request.start_date,
			"availableStudyHoursPerDay": request.available_study_hours_per_day,
			"topicImageInputs": supplementary or None,
		}
		# Reject bad input before spending any image generation calls
		try:
			validate_input(GenerateStudyScheduleInput, schedule_input)
		except SchemaValidationError as err:
			return StudyPlanResponse(error=err.message)

		images: List[str] = []
		if not supplementary and topic_texts:
			outcomes = await self.generate_topic_images(topic_texts, timeout=timeout)
			images = [o.value for o in outcomes if o.ok and o.value]
			failed = sum(1 for o in outcomes if not o.ok)
			if failed:
				logger.info("study plan: %d of %d topic images failed, continuing without them", failed, len(outcomes))
			schedule_input["topicImageInputs"] = images or None

		resources_input = {
			"subject": ", ".join(subject_names) or DEFAULT_SUBJECT,
			"topics": topic_texts or DEFAULT_RESOURCE_TOPICS,
		}
		schedule_result, resources_result = await asyncio.gather(
			self._run(generate_study_schedule, schedule_input, timeout=timeout),
			self._run(suggest_learning_resources, resources_input, timeout=timeout),
		)

		resources = resources_result.payload if resources_result.ok else None
		if not resources_result.ok:
			logger.warning("resource suggestions unavailable: %s", resources_result.message)
		if not schedule_result.ok:
			return StudyPlanResponse(resources=resources, topic_images=images, error=error_message(schedule_result, "study_plan"))
		return StudyPlanResponse(schedule=schedule_result.payload, resources=resources, topic_images=images)

	# ---- text extraction ----

	async def handle_image_upload_for_topic_extraction(self, image_data_uri: str, *, timeout: Optional[float] = None) -> TopicExtractionResponse:
		try:
			logger.info("extracting topics from %s", summarize(image_data_uri))
			result = await self._run(extract_text_from_image, {"imageDataUri": image_data_uri}, timeout=timeout)
		except Exception:
			logger.exception("Error extracting text from image")
			return TopicExtractionResponse(error="Failed to extract text from image.")
		if not result.ok:
			return TopicExtractionResponse(error=error_message(result, "extract"))
		out = result.payload
		return TopicExtractionResponse(
			extracted_text=out.extracted_text,
			comma_separated_topics=out.comma_separated_topics,
			new_line_separated_topics=out.new_line_separated_topics,
		)

	async def _pdf_text(self, upload: UploadedFile, timeout: Optional[float]) -> PdfTextResponse:
		# MIME check happens before the file is encoded
		if not matches_family(upload.content_type, "application/pdf"):
			return PdfTextResponse(error=PDF_UPLOAD_REQUIRED)
		data_uri = file_to_data_uri(upload)
		logger.info("extracting text from %s (%s)", upload.filename, summarize(data_uri))
		result = await self._run(extract_text_from_pdf, {"pdfDataUri": data_uri}, timeout=timeout)
		if not result.ok:
			return PdfTextResponse(error=error_message(result, "extract"))
		return PdfTextResponse(extracted_text=result.payload.extracted_text)

	async def handle_extract_text_from_pdf(self, upload: UploadedFile, *, timeout: Optional[float] = None) -> PdfTextResponse:
		try:
			return await self._pdf_text(upload, timeout)
		except Exception:
			logger.exception("Error extracting text from PDF")
			return PdfTextResponse(error="Failed to extract text from PDF.")

	# ---- quiz ----

	async def handle_create_quiz(self, notes_text: str, num_questions: int = 5, *, timeout: Optional[float] = None) -> QuizResponse:
		try:
			result = await self._run(create_quiz_from_notes, {"notesText": notes_text, "numQuestions": num_questions}, timeout=timeout)
		except Exception:
			logger.exception("Error creating quiz")
			return QuizResponse(error="Failed to create quiz due to an unexpected error.")
		if not result.ok:
			return QuizResponse(error=error_message(result, "quiz"))
		return QuizResponse(quiz_data=result.payload)

	async def handle_create_quiz_from_pdf(self, upload: UploadedFile, num_questions: int = 5, *, timeout: Optional[float] = None) -> QuizResponse:
		try:
			extracted = await self._pdf_text(upload, timeout)
		except Exception:
			logger.exception("Error extracting quiz notes from PDF")
			return QuizResponse(error="Failed to create quiz due to an unexpected error.")
		if extracted.error:
			return QuizResponse(error=extracted.error)
		if not (extracted.extracted_text or "").strip():
			logger.error("PDF text extraction returned empty for %s", upload.filename)
			return QuizResponse(error=EMPTY_PDF_TEXT)
		logger.info("PDF text extracted, %d characters", len(extracted.extracted_text))
		return await self.handle_create_quiz(extracted.extracted_text, num_questions, timeout=timeout)

	# ---- key points ----

	async def handle_generate_key_points(self, answer_content: str, mark_weightage: int, *, timeout: Optional[float] = None) -> KeyPointsResponse:
		max_words = self.config.key_points_max_words
		if isinstance(answer_content, str) and len(answer_content.split()) > max_words:
			return KeyPointsResponse(error=f"Word limit exceeded. Maximum {max_words} words allowed.")
		try:
			result = await self._run(
				generate_key_points,
				{"answerContent": answer_content, "markWeightage": mark_weightage},
				timeout=timeout,
			)
		except Exception:
			logger.exception("Error generating key points")
			return KeyPointsResponse(error="Failed to generate key points due to an unexpected error.")
		if not result.ok:
			return KeyPointsResponse(error=error_message(result, "key_points"))
		return KeyPointsResponse(key_points_data=result.payload)
