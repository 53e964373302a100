from __future__ import annotations
from typing import Any, Dict, List

from ..prompts import Slot, Text, template
from ..schemas import GenerateKeyPointsInput, GenerateKeyPointsOutput, KeyPointsModelOutput, TopicKeyPoints
from ..settings import settings
from .base import Flow, FlowSpec


# mark weightage -> number of points expected in the answer
POINTS_BY_MARKS = {2: 2, 4: 4, 8: 7, 10: 8, 12: 10, 16: 12, 20: 15}

FALLBACK_TOPIC = "General"


def required_points(mark_weightage: int) -> int:
	if mark_weightage in POINTS_BY_MARKS:
		return POINTS_BY_MARKS[mark_weightage]
	lower = [m for m in POINTS_BY_MARKS if m < mark_weightage]
	if not lower:
		return POINTS_BY_MARKS[min(POINTS_BY_MARKS)]
	return POINTS_BY_MARKS[max(lower)]


KEY_POINTS_TEMPLATE = template(
	"keyPointsPrompt",
	Text("Content to Analyze:\n"),
	Slot("answer_content"),
	Text("\n\nTask:\nAnalyze the content above and generate a structured list of key points suitable for a "),
	Slot("mark_weightage"),
	Text("-mark answer.\n\nRules:\n1. The total number of points across all topics MUST be exactly "),
	Slot("required_points"),
	Text(
		".\n"
		"2. If the content is too short to reach that count, expand on the topics from your own knowledge. "
		"Do not say that the content is insufficient.\n"
		"3. Group the points under topic headings inferred from the content; every point belongs to a topic.\n"
		"4. Return a single JSON object with a root key 'keyPoints': an array of objects, "
		"each with 'topic' (string) and 'points' (array of strings)."
	),
	system=(
		"You are an expert academic assistant. You extract and expand key points from content, structured for a "
		"given mark weightage, and you always answer in the requested JSON format."
	),
)


class GenerateKeyPointsFlow(Flow):
	def derive(self, data: GenerateKeyPointsInput) -> Dict[str, Any]:
		return {"required_points": required_points(data.mark_weightage)}

	def postprocess(self, data: GenerateKeyPointsInput, payload: KeyPointsModelOutput) -> GenerateKeyPointsOutput:
		groups: List[TopicKeyPoints] = []
		flat: List[str] = []
		for entry in payload.key_points:
			if isinstance(entry, TopicKeyPoints):
				points = [p.strip() for p in entry.points if p and p.strip()]
				if points:
					groups.append(TopicKeyPoints(topic=entry.topic.strip() or FALLBACK_TOPIC, points=points))
			elif entry and entry.strip():
				flat.append(entry.strip())
		# A flat answer is collapsed into one topic
		if flat:
			groups.append(TopicKeyPoints(topic=FALLBACK_TOPIC, points=flat))
		return GenerateKeyPointsOutput(key_points=groups)


generate_key_points = GenerateKeyPointsFlow(FlowSpec(
	name="generateKeyPointsFlow",
	input_schema=GenerateKeyPointsInput,
	output_schema=GenerateKeyPointsOutput,
	template=KEY_POINTS_TEMPLATE,
	model_id=settings.gemini_model,
	reply_schema=KeyPointsModelOutput,
	derived_slots=frozenset({"required_points"}),
))
