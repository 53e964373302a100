from __future__ import annotations
from types import MappingProxyType
from typing import Mapping

from .base import Flow
from .extract_text import extract_text_from_image, extract_text_from_pdf
from .key_points import generate_key_points
from .quiz import create_quiz_from_notes
from .resources import suggest_learning_resources
from .study_schedule import generate_study_schedule
from .topic_image import generate_topic_image


# Built once at import, read-only afterwards
REGISTRY: Mapping[str, Flow] = MappingProxyType({
	flow.name: flow
	for flow in (
		extract_text_from_image,
		extract_text_from_pdf,
		generate_study_schedule,
		suggest_learning_resources,
		create_quiz_from_notes,
		generate_key_points,
		generate_topic_image,
	)
})


def get_flow(name: str) -> Flow:
	try:
		return REGISTRY[name]
	except KeyError:
		raise KeyError(f"no flow registered as '{name}'") from None
