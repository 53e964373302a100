from __future__ import annotations
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from .data_uri import is_media_reference
from .errors import ErrorKind, SchemaValidationError


M = TypeVar("M", bound=BaseModel)


class CamelModel(BaseModel):
	# Wire keys are camelCase, attributes stay snake_case
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FlowInput(CamelModel):
	# Caller input is never coerced: "5" is not a question count
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True)


def _not_blank(value: str, message: str) -> str:
	if not value or not value.strip():
		raise ValueError(message)
	return value


def _positive(value: float, message: str) -> float:
	if value <= 0:
		raise ValueError(message)
	return value


# ---- extract-text-from-image ----

class ExtractTextFromImageInput(FlowInput):
	image_data_uri: str = Field(description="The cropped image as a data URI with a MIME type and Base64 encoding: 'data:<mimetype>;base64,<encoded_data>'.")

	@field_validator("image_data_uri")
	@classmethod
	def _check_uri(cls, v: str) -> str:
		return _not_blank(v, "An image is required.")


class ExtractTextFromImageOutput(CamelModel):
	extracted_text: str = Field(default="", description="The raw, unprocessed text extracted directly from the image.")
	comma_separated_topics: str = Field(default="", description='The extracted topics as a single, comma-separated string (e.g., "Topic A, Topic B").')
	new_line_separated_topics: str = Field(default="", description="The extracted topics as a single string, with each topic on a new line.")


# ---- extract-text-from-pdf ----

class ExtractTextFromPdfInput(FlowInput):
	pdf_data_uri: str = Field(description="The PDF document as a data URI: 'data:application/pdf;base64,<encoded_data>'.")

	@field_validator("pdf_data_uri")
	@classmethod
	def _check_uri(cls, v: str) -> str:
		return _not_blank(v, "A PDF document is required.")


class ExtractTextFromPdfOutput(CamelModel):
	extracted_text: str = Field(default="", description="The text extracted from the PDF document.")


# ---- generate-study-schedule ----

class GenerateStudyScheduleInput(FlowInput):
	subjects: List[str] = Field(description="List of subjects to study, e.g., Mathematics, Physics, Chemistry.")
	topics: List[str] = Field(description="All topics across all subjects; the model identifies distinct topics and distributes them.")
	topic_image_inputs: Optional[List[str]] = Field(default=None, description="Optional topic images as data URIs or https URLs, used as visual context.")
	exam_date: str = Field(description="The date of the exam, e.g., 2024-12-31.")
	start_date: str = Field(description="The date to start studying, e.g., 2024-10-01.")
	available_study_hours_per_day: float = Field(description="The number of hours available to study each day, e.g., 3.")

	@field_validator("subjects", "topics")
	@classmethod
	def _check_entries(cls, v: List[str], info: ValidationInfo) -> List[str]:
		cleaned = [s.strip() for s in v if s and s.strip()]
		if not cleaned:
			raise ValueError(f"At least one {info.field_name.rstrip('s')} is required.")
		return cleaned

	@field_validator("topic_image_inputs")
	@classmethod
	def _check_images(cls, v: Optional[List[str]]) -> Optional[List[str]]:
		for uri in v or []:
			if not is_media_reference(uri):
				raise ValueError("Topic images must be base64 data URIs or https URLs.")
		return v

	@field_validator("exam_date", "start_date")
	@classmethod
	def _check_date(cls, v: str) -> str:
		return _not_blank(v, "A date is required.").strip()

	@field_validator("available_study_hours_per_day")
	@classmethod
	def _check_hours(cls, v: float) -> float:
		return _positive(v, "Available study hours per day must be a positive number.")


class TimetableEntry(CamelModel):
	date: str = Field(description="The date for this study session, e.g., 2024-10-01.")
	topics: List[str] = Field(default_factory=list, description="Topics to study on this date, drawn from the input topic list.")


class GenerateStudyScheduleOutput(CamelModel):
	timetable: List[TimetableEntry] = Field(description="Study sessions in order, each with a date and the topics for that date.")
	summary: str = Field(description='Time allocation per subject, e.g., "Mathematics: 40%, Physics: 30%, Chemistry: 30%".')


# ---- suggest-learning-resources ----

class SuggestLearningResourcesInput(FlowInput):
	subject: str = Field(description="The subject of study (e.g., Mathematics, History, Biology).")
	topics: List[str] = Field(description="Topics to find learning resources for.")

	@field_validator("subject")
	@classmethod
	def _check_subject(cls, v: str) -> str:
		return _not_blank(v, "Subject cannot be empty.").strip()


class SuggestLearningResourcesOutput(CamelModel):
	resource_suggestions: List[str] = Field(default_factory=list, description="Suggested learning resources (URLs, book titles, other study material).")


# ---- create-quiz-from-notes ----

class CreateQuizFromNotesInput(FlowInput):
	notes_text: str = Field(description="The study notes text to build the quiz from.")
	num_questions: int = Field(default=5, description="Number of multiple-choice questions to generate.")

	@field_validator("notes_text")
	@classmethod
	def _check_notes(cls, v: str) -> str:
		return _not_blank(v, "Notes text cannot be empty.")

	@field_validator("num_questions")
	@classmethod
	def _check_count(cls, v: int) -> int:
		return int(_positive(v, "Number of questions must be a positive number."))


class CreateQuizFromNotesOutput(CamelModel):
	quiz: str = Field(description=(
		'The generated quiz as a JSON string: an object with "title" (string) and "questions" (array). '
		'Each question has "id" (e.g. "q1"), "questionText", "options" (array of 4 strings), '
		'"correctAnswer" (one of the options) and optionally "explanation".'
	))


# ---- generate-key-points ----

class GenerateKeyPointsInput(FlowInput):
	answer_content: str = Field(description="The full answer content from notes or textbook.")
	mark_weightage: int = Field(description="The mark weightage of the answer (e.g., 2, 4, 8, 12, 16 marks).")

	@field_validator("answer_content")
	@classmethod
	def _check_content(cls, v: str) -> str:
		return _not_blank(v, "Answer content cannot be empty.")

	@field_validator("mark_weightage")
	@classmethod
	def _check_weightage(cls, v: int) -> int:
		return int(_positive(v, "Mark weightage must be a positive number."))


class TopicKeyPoints(CamelModel):
	topic: str = Field(description="The topic or module heading.")
	points: List[str] = Field(default_factory=list, description="Key points for this topic.")


class KeyPointsModelOutput(CamelModel):
	"""What the model is allowed to answer with; normalised into GenerateKeyPointsOutput."""

	key_points: Union[List[TopicKeyPoints], List[str]] = Field(description="Topic objects with a title and points, or a flat list of points.")


class GenerateKeyPointsOutput(CamelModel):
	key_points: List[TopicKeyPoints] = Field(description="Topic objects, each containing a topic title and its key points.")

	def by_topic(self) -> Dict[str, List[str]]:
		grouped: Dict[str, List[str]] = {}
		for entry in self.key_points:
			grouped.setdefault(entry.topic, []).extend(entry.points)
		return grouped


# ---- generate-topic-image ----

class GenerateTopicImageInput(FlowInput):
	topic_text: str = Field(description="The text of the topic to generate an image for.")

	@field_validator("topic_text")
	@classmethod
	def _check_topic(cls, v: str) -> str:
		return _not_blank(v, "Topic text cannot be empty.").strip()


class GenerateTopicImageOutput(CamelModel):
	image_data_uri: str = Field(description="The generated image as a data URI: 'data:image/png;base64,<encoded_data>'.")


# ---- validation helpers ----

def _first_error(err: ValidationError) -> tuple[str, str]:
	first = err.errors()[0]
	path = ".".join(str(p) for p in first.get("loc", ()))
	ctx_error = (first.get("ctx") or {}).get("error")
	message = str(ctx_error) if ctx_error is not None else first.get("msg", "invalid value")
	return path, message


def validate_input(model: Type[M], data: Any) -> M:
	if isinstance(data, model):
		return data
	try:
		return model.model_validate(data)
	except ValidationError as err:
		path, message = _first_error(err)
		raise SchemaValidationError(ErrorKind.INVALID_INPUT, message, field=path) from err


def validate_output(model: Type[M], data: Any) -> M:
	try:
		return model.model_validate(data)
	except ValidationError as err:
		path, message = _first_error(err)
		raise SchemaValidationError(
			ErrorKind.MALFORMED_OUTPUT,
			f"Model output did not match {model.__name__} at '{path}': {message}",
			field=path,
		) from err


def describe(model: Type[BaseModel]) -> str:
	lines: List[str] = []
	for name, info in model.model_fields.items():
		key = info.alias or name
		annotation = getattr(info.annotation, "__name__", None) or str(info.annotation).replace("typing.", "")
		flag = "required" if info.is_required() else "optional"
		lines.append(f"- {key} ({annotation}, {flag}): {info.description or ''}".rstrip())
	return "\n".join(lines)


def json_schema(model: Type[BaseModel]) -> Dict[str, Any]:
	return model.model_json_schema(by_alias=True)
