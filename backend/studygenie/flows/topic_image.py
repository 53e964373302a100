from __future__ import annotations

from ..errors import ErrorKind, FlowError
from ..gemini_client import Modality, ModelReply
from ..prompts import Slot, Text, template
from ..schemas import GenerateTopicImageInput, GenerateTopicImageOutput
from ..settings import settings
from .base import Flow, FlowSpec


TOPIC_IMAGE_TEMPLATE = template(
	"generateTopicImagePrompt",
	Text("Generate a visually appealing and relevant image representing the study topic: \""),
	Slot("topic_text"),
	Text("\". The image should be simple, clear, and suitable for a study aid."),
)


class GenerateTopicImageFlow(Flow):
	def postprocess(self, data: GenerateTopicImageInput, payload: ModelReply) -> GenerateTopicImageOutput:
		if not payload.images:
			raise FlowError(ErrorKind.MODEL_ERROR, "Image generation failed to return an image.")
		return GenerateTopicImageOutput(image_data_uri=payload.images[0])


generate_topic_image = GenerateTopicImageFlow(FlowSpec(
	name="generateTopicImageFlow",
	input_schema=GenerateTopicImageInput,
	output_schema=GenerateTopicImageOutput,
	template=TOPIC_IMAGE_TEMPLATE,
	model_id=settings.gemini_image_model,
	modalities=frozenset({Modality.TEXT, Modality.IMAGE}),
))
