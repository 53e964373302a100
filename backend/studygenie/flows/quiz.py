from __future__ import annotations
import logging
from typing import Any, Dict

from ..prompts import Slot, Text, template
from ..schemas import CreateQuizFromNotesInput, CreateQuizFromNotesOutput
from ..settings import settings
from .base import Flow, FlowSpec
from .extract_text import strip_fence

logger = logging.getLogger(__name__)


QUIZ_TEMPLATE = template(
	"quizGenerationPrompt",
	Text("You are an expert quiz maker.\nBased on the following study notes text, create a quiz with "),
	Slot("num_questions"),
	Text(
		" multiple-choice questions.\n"
		"Each question must have exactly 4 distinct options, one of which is the correct answer.\n"
		"If possible, add a brief explanation of why the correct answer is correct.\n\n"
		"Write the whole quiz as one JSON object of this shape:\n"
		'{"title": "Quiz based on Your Notes", "questions": [{"id": "q1", "questionText": "...", '
		'"options": ["A", "B", "C", "D"], "correctAnswer": "C", "explanation": "..."}]}\n'
		'Question ids must be unique ("q1", "q2", ...) and each correctAnswer must exactly match one of its options.\n'
		"Return JSON with one key, 'quiz', whose value is that quiz object serialized as a string.\n\n"
		"Study Notes Text:\n"
	),
	Slot("notes_text"),
)


class CreateQuizFromNotesFlow(Flow):
	def derive(self, data: CreateQuizFromNotesInput) -> Dict[str, Any]:
		limit = settings.quiz_max_notes_chars
		if len(data.notes_text) > limit:
			logger.warning("notes text is %d chars, truncating to %d for quiz generation", len(data.notes_text), limit)
			return {"notes_text": data.notes_text[:limit]}
		return {}

	def postprocess(self, data: CreateQuizFromNotesInput, payload: CreateQuizFromNotesOutput) -> CreateQuizFromNotesOutput:
		# The quiz stays an opaque string; only a markdown fence around it is removed
		if payload.quiz.lstrip().startswith("```"):
			return CreateQuizFromNotesOutput(quiz=strip_fence(payload.quiz))
		return payload


create_quiz_from_notes = CreateQuizFromNotesFlow(FlowSpec(
	name="createQuizFromNotesFlow",
	input_schema=CreateQuizFromNotesInput,
	output_schema=CreateQuizFromNotesOutput,
	template=QUIZ_TEMPLATE,
	model_id=settings.gemini_model,
	reply_schema=CreateQuizFromNotesOutput,
))
