from __future__ import annotations

import asyncio

import pytest

from conftest import PNG_URI, StubModelClient, echo
from studygenie.actions import (
	EMPTY_PDF_TEXT,
	PDF_UPLOAD_REQUIRED,
	ActionGateway,
	StudyPlanRequest,
	SubjectEntry,
	unique_topics,
)
from studygenie.data_uri import UploadedFile
from studygenie.errors import ErrorKind
from studygenie.gemini_client import ModelReply
from studygenie.results import Failure, Success
from studygenie.schemas import (
	CreateQuizFromNotesOutput,
	ExtractTextFromImageOutput,
	GenerateStudyScheduleOutput,
	KeyPointsModelOutput,
	SuggestLearningResourcesOutput,
	TimetableEntry,
	TopicKeyPoints,
)
from studygenie.settings import settings

pytestmark = pytest.mark.unit


SCHEDULE = GenerateStudyScheduleOutput(
	timetable=[TimetableEntry(date="2024-10-01", topics=["Algebra"])],
	summary="Mathematics: 50%, Physics: 30%, Chemistry: 20%",
)
RESOURCES = SuggestLearningResourcesOutput(resource_suggestions=["https://www.khanacademy.org"])
QUIZ = CreateQuizFromNotesOutput(quiz='{"title": "Quiz", "questions": []}')


def _config(**overrides):
	values = {"transient_retry_backoff_seconds": 0.0}
	values.update(overrides)
	return settings.model_copy(update=values)


def _gateway(client, **overrides) -> ActionGateway:
	return ActionGateway(client, _config(**overrides))


def _plan(*topics: str) -> StudyPlanRequest:
	subjects = [SubjectEntry(name=f"Subject {i}", topics=t) for i, t in enumerate(topics)]
	return StudyPlanRequest(
		subjects=subjects,
		exam_date="2024-12-31",
		start_date="2024-10-01",
		available_study_hours_per_day=3,
	)


def study_plan_responder(fail_image_for: str = "", schedule=None, resources=None):
	def respond(call):
		if call.wants_image:
			if fail_image_for and fail_image_for in call.text:
				return Failure(ErrorKind.MODEL_ERROR, "Image generation failed to return an image.")
			return Success(ModelReply(text="", images=(PNG_URI,)))
		if call.output_schema is GenerateStudyScheduleOutput:
			return schedule or Success(SCHEDULE)
		if call.output_schema is SuggestLearningResourcesOutput:
			return resources or Success(RESOURCES)
		raise AssertionError(f"unexpected call {call.model_id}")

	return respond


# ---- quiz ----

@pytest.mark.asyncio
async def test_empty_notes_return_error_without_model_call() -> None:
	client = StubModelClient()
	response = await _gateway(client).handle_create_quiz("", 5)
	assert response.quiz_data is None
	assert response.error == "Notes text cannot be empty."
	assert client.calls == []


@pytest.mark.asyncio
async def test_rate_limited_quiz_gets_guidance() -> None:
	client = StubModelClient(echo(Failure(ErrorKind.RATE_LIMITED, "429 Too Many Requests")))
	response = await _gateway(client).handle_create_quiz("Mitochondria is the powerhouse of the cell.", 5)
	assert response.quiz_data is None
	assert response.error == "Quiz generation failed due to API rate limits. Please try again later or with shorter notes."
	assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_oversized_notes_get_shorten_guidance() -> None:
	client = StubModelClient(echo(Failure(ErrorKind.INPUT_TOO_LARGE, "token count exceeds")))
	response = await _gateway(client).handle_create_quiz("Long notes", 5)
	assert response.error == "Your notes are too long for the AI to process. Please shorten them and try again."


@pytest.mark.asyncio
async def test_quiz_success_has_no_error() -> None:
	client = StubModelClient(echo(Success(QUIZ)))
	response = await _gateway(client).handle_create_quiz("Mitochondria is the powerhouse of the cell.", 5)
	assert response.quiz_data == QUIZ
	assert response.error is None
	dumped = response.model_dump(by_alias=True)
	assert dumped == {"quizData": {"quiz": QUIZ.quiz}, "error": None}


@pytest.mark.asyncio
async def test_transient_failure_is_retried_once() -> None:
	results = [Failure(ErrorKind.TRANSIENT, "timed out", retryable=True), Success(QUIZ)]
	client = StubModelClient(lambda call: results.pop(0))
	response = await _gateway(client).handle_create_quiz("Notes", 5)
	assert response.quiz_data == QUIZ
	assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_transient_retries_are_bounded() -> None:
	client = StubModelClient(echo(Failure(ErrorKind.TRANSIENT, "connection reset", retryable=True)))
	response = await _gateway(client, transient_retry_attempts=1).handle_create_quiz("Notes", 5)
	assert response.error == "connection reset"
	assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_model_error_is_not_retried() -> None:
	client = StubModelClient(echo(Failure(ErrorKind.MODEL_ERROR, "Request contains an invalid argument.")))
	response = await _gateway(client).handle_create_quiz("Notes", 5)
	assert response.error == "Request contains an invalid argument."
	assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_quiz_from_pdf_rejects_other_files_before_encoding() -> None:
	client = StubModelClient()
	upload = UploadedFile(filename="notes.docx", content_type="application/msword", content=b"doc")
	response = await _gateway(client).handle_create_quiz_from_pdf(upload)
	assert response.error == PDF_UPLOAD_REQUIRED
	assert client.calls == []


@pytest.mark.asyncio
async def test_quiz_from_pdf_extracts_then_generates() -> None:
	def respond(call):
		if call.output_schema is None:
			return Success(ModelReply(text="Photosynthesis converts light into chemical energy."))
		return Success(QUIZ)

	client = StubModelClient(respond)
	upload = UploadedFile(filename="notes.pdf", content_type="application/pdf", content=b"%PDF-1.4")
	response = await _gateway(client).handle_create_quiz_from_pdf(upload, 3)
	assert response.quiz_data == QUIZ
	assert client.calls[0].media[0].startswith("data:application/pdf;base64,")
	assert "Photosynthesis converts light" in client.calls[1].text


@pytest.mark.asyncio
async def test_quiz_from_pdf_without_text() -> None:
	client = StubModelClient(echo(Success(ModelReply(text="   "))))
	upload = UploadedFile(filename="scan.pdf", content_type="application/pdf", content=b"%PDF-1.4")
	response = await _gateway(client).handle_create_quiz_from_pdf(upload)
	assert response.error == EMPTY_PDF_TEXT
	assert len(client.calls) == 1


# ---- key points ----

@pytest.mark.asyncio
async def test_key_points_success() -> None:
	reply = KeyPointsModelOutput(key_points=[TopicKeyPoints(topic="Cells", points=["Nucleus", "Membrane"])])
	client = StubModelClient(echo(Success(reply)))
	response = await _gateway(client).handle_generate_key_points("The cell is the basic unit of life.", 2)
	assert response.error is None
	assert response.key_points_data.by_topic() == {"Cells": ["Nucleus", "Membrane"]}


@pytest.mark.asyncio
async def test_key_points_zero_weightage_is_rejected_locally() -> None:
	client = StubModelClient()
	response = await _gateway(client).handle_generate_key_points("The cell is the basic unit of life.", 0)
	assert response.key_points_data is None
	assert response.error == "Mark weightage must be a positive number."
	assert client.calls == []


@pytest.mark.asyncio
async def test_key_points_word_limit() -> None:
	client = StubModelClient()
	response = await _gateway(client, key_points_max_words=3).handle_generate_key_points("one two three four", 4)
	assert response.error == "Word limit exceeded. Maximum 3 words allowed."
	assert client.calls == []


@pytest.mark.asyncio
async def test_key_points_rate_limit_guidance() -> None:
	client = StubModelClient(echo(Failure(ErrorKind.RATE_LIMITED, "quota")))
	response = await _gateway(client).handle_generate_key_points("Content", 8)
	assert "try again later" in response.error


# ---- topic extraction ----

@pytest.mark.asyncio
async def test_topic_extraction_envelope() -> None:
	reply = ExtractTextFromImageOutput(
		extracted_text="Algebra, Calculus",
		comma_separated_topics="Algebra, Calculus",
		new_line_separated_topics="Algebra\nCalculus",
	)
	client = StubModelClient(echo(Success(reply)))
	response = await _gateway(client).handle_image_upload_for_topic_extraction(PNG_URI)
	assert response.extracted_text == "Algebra, Calculus"
	assert response.new_line_separated_topics == "Algebra\nCalculus"
	assert response.error is None


@pytest.mark.asyncio
async def test_topic_extraction_rejects_pdf() -> None:
	client = StubModelClient()
	response = await _gateway(client).handle_image_upload_for_topic_extraction("data:application/pdf;base64,JVBERi0=")
	assert response.extracted_text is None
	assert response.error
	assert client.calls == []


@pytest.mark.asyncio
async def test_pdf_extraction_envelope() -> None:
	client = StubModelClient(echo(Success(ModelReply(text="Chapter 1"))))
	upload = UploadedFile(filename="notes.pdf", content_type="application/pdf", content=b"%PDF-1.4")
	response = await _gateway(client).handle_extract_text_from_pdf(upload)
	assert response.extracted_text == "Chapter 1"


# ---- study plan ----

def test_unique_topics_is_exact_and_ordered() -> None:
	assert unique_topics(["Optics", "optics", "Optics", "Waves"]) == ["Optics", "optics", "Waves"]


@pytest.mark.asyncio
async def test_study_plan_survives_one_failed_image() -> None:
	client = StubModelClient(study_plan_responder(fail_image_for="Stoichiometry"))
	request = _plan("Algebra", "Optics", "Stoichiometry", "Algebra")
	response = await _gateway(client).handle_generate_study_plan(request)

	assert response.error is None
	assert response.schedule == SCHEDULE
	assert response.resources == RESOURCES
	assert response.topic_images == [PNG_URI, PNG_URI]
	image_calls = [c for c in client.calls if c.wants_image]
	# duplicate "Algebra" is only drawn once
	assert len(image_calls) == 3
	schedule_call = next(c for c in client.calls if c.output_schema is GenerateStudyScheduleOutput)
	assert schedule_call.media == [PNG_URI, PNG_URI]


@pytest.mark.asyncio
async def test_study_plan_uses_defaults_without_topics() -> None:
	client = StubModelClient(study_plan_responder())
	request = StudyPlanRequest(
		subjects=[SubjectEntry(name="History")],
		exam_date="2024-12-31",
		start_date="2024-10-01",
		available_study_hours_per_day=2,
	)
	response = await _gateway(client).handle_generate_study_plan(request)
	assert response.schedule == SCHEDULE
	assert not any(c.wants_image for c in client.calls)
	schedule_call = next(c for c in client.calls if c.output_schema is GenerateStudyScheduleOutput)
	assert "- General Studies" in schedule_call.text
	resources_call = next(c for c in client.calls if c.output_schema is SuggestLearningResourcesOutput)
	assert "Topics: general knowledge" in resources_call.text


@pytest.mark.asyncio
async def test_supplementary_images_skip_generation() -> None:
	client = StubModelClient(study_plan_responder())
	request = _plan("Algebra")
	upload = UploadedFile(filename="algebra.png", content_type="image/png", content=b"\x89PNG")
	response = await _gateway(client).handle_generate_study_plan(request, [upload])
	assert response.schedule == SCHEDULE
	assert response.topic_images == []
	assert not any(c.wants_image for c in client.calls)
	schedule_call = next(c for c in client.calls if c.output_schema is GenerateStudyScheduleOutput)
	assert schedule_call.media[0].startswith("data:image/png;base64,")


@pytest.mark.asyncio
async def test_study_plan_rejects_non_image_upload() -> None:
	client = StubModelClient(study_plan_responder())
	upload = UploadedFile(filename="notes.pdf", content_type="application/pdf", content=b"%PDF")
	response = await _gateway(client).handle_generate_study_plan(_plan("Algebra"), [upload])
	assert response.schedule is None
	assert response.error
	assert client.calls == []


@pytest.mark.asyncio
async def test_invalid_hours_fail_before_any_image_call() -> None:
	client = StubModelClient(study_plan_responder())
	request = _plan("Algebra", "Optics")
	request.available_study_hours_per_day = 0
	response = await _gateway(client).handle_generate_study_plan(request)
	assert response.schedule is None
	assert response.error == "Available study hours per day must be a positive number."
	assert client.calls == []


@pytest.mark.asyncio
async def test_schedule_failure_sets_error_but_keeps_resources() -> None:
	schedule = Failure(ErrorKind.MALFORMED_OUTPUT, "Model output did not match GenerateStudyScheduleOutput")
	client = StubModelClient(study_plan_responder(schedule=schedule))
	response = await _gateway(client).handle_generate_study_plan(_plan("Algebra"))
	assert response.schedule is None
	assert response.error.startswith("Model output did not match")
	assert response.resources == RESOURCES


@pytest.mark.asyncio
async def test_schedule_rate_limit_guidance() -> None:
	client = StubModelClient(study_plan_responder(schedule=Failure(ErrorKind.RATE_LIMITED, "quota")))
	response = await _gateway(client).handle_generate_study_plan(_plan("Algebra"))
	assert response.error == "Study plan generation failed due to API rate limits. Please try again later."


@pytest.mark.asyncio
async def test_resource_failure_does_not_flag_error() -> None:
	client = StubModelClient(study_plan_responder(resources=Failure(ErrorKind.MODEL_ERROR, "boom")))
	response = await _gateway(client).handle_generate_study_plan(_plan("Algebra"))
	assert response.schedule == SCHEDULE
	assert response.resources is None
	assert response.error is None


class ConcurrencyProbe:
	def __init__(self) -> None:
		self.active = 0
		self.peak = 0
		self.calls = 0

	async def invoke(self, model_id, payload, output_schema, options=None):
		self.calls += 1
		self.active += 1
		self.peak = max(self.peak, self.active)
		await asyncio.sleep(0.01)
		self.active -= 1
		return Success(ModelReply(text="", images=(PNG_URI,)))


@pytest.mark.asyncio
async def test_image_fan_out_is_bounded() -> None:
	probe = ConcurrencyProbe()
	gateway = ActionGateway(probe, _config(study_plan_image_concurrency=2))
	outcomes = await gateway.generate_topic_images([f"Topic {i}" for i in range(7)])
	assert probe.calls == 7
	assert probe.peak <= 2
	assert all(o.ok for o in outcomes)
	assert [o.key for o in outcomes] == [f"Topic {i}" for i in range(7)]


@pytest.mark.asyncio
async def test_long_topic_text_is_shortened_for_images() -> None:
	client = StubModelClient(echo(Success(ModelReply(text="", images=(PNG_URI,)))))
	gateway = _gateway(client, topic_image_max_chars=10)
	await gateway.generate_topic_images(["A" * 30])
	assert '"AAAAAAAAAA..."' in client.calls[0].text


@pytest.mark.asyncio
async def test_client_exceptions_are_contained() -> None:
	def explode(call):
		raise RuntimeError("socket closed")

	client = StubModelClient(explode)
	response = await _gateway(client).handle_generate_study_plan(_plan("Algebra"))
	assert response.schedule is None
	assert response.resources is None
	assert response.topic_images == []
	assert response.error == "Model call failed: socket closed"
