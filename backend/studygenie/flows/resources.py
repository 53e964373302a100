from __future__ import annotations

from ..prompts import ListSlot, Slot, Text, template
from ..schemas import SuggestLearningResourcesInput, SuggestLearningResourcesOutput
from ..settings import settings
from .base import Flow, FlowSpec


RESOURCES_TEMPLATE = template(
	"suggestLearningResourcesPrompt",
	Text("You are an AI assistant that suggests learning resources for students.\n\nSubject: "),
	Slot("subject"),
	Text("\nTopics: "),
	ListSlot("topics"),
	Text(
		"\n\nSuggest learning resources that will help the student study this material: links to websites, "
		"specific books or other study materials.\n"
		"Return JSON with one key, 'resourceSuggestions', an array of strings."
	),
)


class SuggestLearningResourcesFlow(Flow):
	def postprocess(self, data: SuggestLearningResourcesInput, payload: SuggestLearningResourcesOutput) -> SuggestLearningResourcesOutput:
		# URL checks are left to the presentation layer
		return SuggestLearningResourcesOutput(
			resource_suggestions=[s.strip() for s in payload.resource_suggestions if s and s.strip()],
		)


suggest_learning_resources = SuggestLearningResourcesFlow(FlowSpec(
	name="suggestLearningResourcesFlow",
	input_schema=SuggestLearningResourcesInput,
	output_schema=SuggestLearningResourcesOutput,
	template=RESOURCES_TEMPLATE,
	model_id=settings.gemini_model,
	reply_schema=SuggestLearningResourcesOutput,
))
