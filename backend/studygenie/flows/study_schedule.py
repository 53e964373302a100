from __future__ import annotations
import logging

from ..prompts import EachMedia, ListSlot, Slot, Text, if_present, template
from ..schemas import GenerateStudyScheduleInput, GenerateStudyScheduleOutput, TimetableEntry
from ..settings import settings
from .base import Flow, FlowSpec

logger = logging.getLogger(__name__)


SCHEDULE_TEMPLATE = template(
	"generateStudySchedulePrompt",
	Text("You are an expert study timetable generator. Given the following information, create a study timetable.\n\nSubjects: "),
	ListSlot("subjects"),
	Text("\n\nTopics to cover (these are from all subjects combined, distribute them logically):\n"),
	ListSlot("topics", style="bullets"),
	Text("\n\n"),
	if_present(
		"topic_image_inputs",
		Text(
			"Here are some visual aids related to the topics. Use them for context if helpful, "
			"but do not try to reproduce them in the JSON output.\n"
		),
		EachMedia("topic_image_inputs"),
	),
	Text("Exam Date: "),
	Slot("exam_date"),
	Text("\nStart Date: "),
	Slot("start_date"),
	Text("\nAvailable Study Hours Per Day: "),
	Slot("available_study_hours_per_day"),
	Text(
		"\n\nCreate a daily timetable that splits these topics across the available days, starting from the "
		"Start Date and leading up to the Exam Date, keeping each day within the available study hours.\n"
		"For 'summary', give an estimated time allocation per subject, in percentages "
		'(e.g. "Mathematics: 40%, Physics: 30%") or in total hours (e.g. "Biology: 25 hours").\n'
		"Return JSON with 'timetable' (array of objects with 'date' and a 'topics' array of strings) and 'summary'."
	),
)


class GenerateStudyScheduleFlow(Flow):
	def postprocess(self, data: GenerateStudyScheduleInput, payload: GenerateStudyScheduleOutput) -> GenerateStudyScheduleOutput:
		timetable = [
			TimetableEntry(date=entry.date.strip(), topics=[t.strip() for t in entry.topics if t and t.strip()])
			for entry in payload.timetable
		]
		summary = payload.summary.strip()
		if summary and ":" not in summary and "no summary" not in summary.lower():
			logger.warning("study schedule summary is not a per-subject allocation: %s", summary[:120])
		return GenerateStudyScheduleOutput(timetable=timetable, summary=summary)


generate_study_schedule = GenerateStudyScheduleFlow(FlowSpec(
	name="generateStudyScheduleFlow",
	input_schema=GenerateStudyScheduleInput,
	output_schema=GenerateStudyScheduleOutput,
	template=SCHEDULE_TEMPLATE,
	model_id=settings.gemini_model,
	reply_schema=GenerateStudyScheduleOutput,
))
