from __future__ import annotations
from typing import Any, List, Optional, Sequence, Union

from . import catalog
from .catalog import QuizGrammar

DEFAULT_TOPICS = ["General concepts"]
DEFAULT_IMPROVEMENT = "Please improve this section with more engaging and effective content."


def normalize_topics(topics: Union[None, str, Sequence[str]]) -> List[str]:
	if not topics:
		return list(DEFAULT_TOPICS)
	if isinstance(topics, str):
		# "all topics" and similar mean no particular focus
		if "all" in topics.lower():
			return list(DEFAULT_TOPICS)
		items = [t.strip() for t in topics.split(",")]
	else:
		items = [str(t).strip() for t in topics]
	items = [t for t in items if t]
	return items or list(DEFAULT_TOPICS)


def normalize_field(value: Any, default: Any) -> Any:
	if value is None or value == "":
		return default
	return value


def normalize_int(value: Any, default: int) -> int:
	try:
		number = int(normalize_field(value, default))
	except (TypeError, ValueError):
		return default
	return number if number > 0 else default


def _section_outline(template_id: str) -> str:
	blocks = []
	for spec in catalog.specs_for(template_id):
		blocks.append(f"{spec.label}\n[{spec.hint}]")
	return "\n\n".join(blocks)


def build_generation_prompt(
	template_id: str,
	*,
	title: str,
	grade: str,
	subject: str,
	curriculum: str,
	topics: List[str],
	duration: int,
	additional_instructions: str = "None",
	sessions: int = 5,
	difficulty: str = "Medium",
	num_questions: int = 10,
) -> str:
	topic_list = ", ".join(topics)
	grammar = catalog.sections_for(template_id)

	if isinstance(grammar, QuizGrammar):
		return (
			f"You are an experienced {curriculum} assessment specialist for grade {grade} {subject}. "
			"Create high-quality multiple choice questions.\n\n"
			f"TOPIC: {title}\nGRADE: {grade}\nSUBJECT: {subject}\nCURRICULUM: {curriculum}\n"
			f"DIFFICULTY: {difficulty}\nQUESTIONS: {num_questions}\nDURATION: {duration} minutes\nTOPICS: {topic_list}\n\n"
			f"Create {num_questions} multiple choice questions with this exact format:\n\n"
			"Q1. [Clear question stem that tests understanding]\n"
			"A) [Plausible option A]\nB) [Plausible option B]\nC) [Plausible option C]\nD) [Plausible option D]\n"
			"Correct: [Letter of correct answer]\n"
			"Explanation: [Brief explanation why this is correct]\n\n"
			"Q2. [Next question...]\n\n"
			"Requirements:\n"
			f"- {num_questions} questions total\n"
			"- 4 plausible options for each question\n"
			"- Mark the correct answer with \"Correct: [Letter]\"\n"
			"- Include a brief explanation for each\n"
			"- Mix of factual recall (30%), understanding (40%), and application (30%)\n"
			f"- Appropriate for {difficulty} difficulty level\n"
			f"- Align with {curriculum} standards for grade {grade}\n"
			"- Return ONLY the questions in the specified format, no introductory text"
		)

	header = f"TOPIC: {title}\nGRADE: {grade}\nSUBJECT: {subject}\nCURRICULUM: {curriculum}\n"
	if template_id == "lesson_plan":
		return (
			f"You are an expert {curriculum} curriculum designer for grade {grade} {subject}. "
			"Create a comprehensive lesson plan that is practical and classroom-ready.\n\n"
			f"{header}DURATION: {duration} minutes\nKEY TOPICS: {topic_list}\n"
			f"ADDITIONAL REQUIREMENTS: {additional_instructions}\n\n"
			f"Please structure the lesson plan with these clear sections:\n\n{_section_outline(template_id)}\n\n"
			f"Ensure the content is age-appropriate for grade {grade} and strictly follows {curriculum} guidelines."
		)
	if template_id == "unit_plan":
		return (
			f"You are a unit planning expert for {curriculum} grade {grade} {subject}. Create a comprehensive unit plan.\n\n"
			f"{header}SESSIONS: {sessions}\nKEY CONCEPTS: {topic_list}\n\n"
			f"Create a {sessions}-session unit plan with:\n\n{_section_outline(template_id)}\n\n"
			f"Ensure progressive complexity across the {sessions} sessions."
		)
	if template_id == "project":
		return (
			f"You are a project-based learning specialist for {curriculum} grade {grade} {subject}. "
			"Design an engaging, practical project.\n\n"
			f"{header}DURATION: {duration} days\nFOCUS AREAS: {topic_list}\nADDITIONAL: {additional_instructions}\n\n"
			f"Create a comprehensive project plan with these sections:\n\n{_section_outline(template_id)}\n\n"
			f"Make the project hands-on, engaging, and achievable for grade {grade} students."
		)
	if template_id == "gagne_lesson_plan":
		events = "\n\n".join(
			f"{i}. {spec.label}\n   [{spec.hint}]"
			for i, spec in enumerate(catalog.specs_for(template_id), start=1)
		)
		return (
			"You are an instructional design expert using Gagné's Nine Events. Create a structured lesson plan.\n\n"
			f"{header}DURATION: {duration} minutes\n\n"
			f"Follow Gagné's Nine Events structure with timing:\n\n{events}\n\n"
			f"Make each event clear and pedagogically sound for grade {grade}."
		)
	if template_id == "debate":
		return (
			f"You are a debate coordinator for {curriculum} grade {grade} {subject}. Design a structured debate.\n\n"
			f"{header}DURATION: {duration} minutes\n\n"
			f"Create a comprehensive debate structure:\n\n{_section_outline(template_id)}\n\n"
			"Ensure balanced perspectives and age-appropriate complexity."
		)
	return (
		f"Create comprehensive educational content for {curriculum} curriculum, grade {grade} {subject} "
		f"on topic \"{title}\".\n\n"
		f"Additional Instructions: {additional_instructions}\n"
		f"Topics: {topic_list}\n\n"
		f"Create engaging, age-appropriate content that aligns with {curriculum} standards."
	)


def build_context(
	*,
	title: str,
	grade: Optional[str],
	subject: Optional[str],
	curriculum: Optional[str],
	template_id: str,
	duration: Optional[int] = None,
	topics: Optional[List[str]] = None,
	additional_details: Optional[str] = None,
) -> str:
	lines = [
		f"Lesson: {title}",
		f"Grade: {grade or ''}",
		f"Subject: {subject or ''}",
		f"Curriculum: {curriculum or ''}",
		f"Template: {template_id}",
	]
	if duration:
		lines.append(f"Duration: {duration} minutes")
	if topics:
		lines.append(f"Topics: {', '.join(topics)}")
	if additional_details:
		lines.append(f"Additional Details: {additional_details}")
	return "\n".join(lines)


def build_regeneration_prompt(
	*,
	section_label: str,
	context: str,
	original_prompt: str,
	current_content: str,
	tweak: Optional[str] = None,
) -> str:
	return (
		f"You are an educational content expert. Regenerate the {section_label} section.\n\n"
		f"CONTEXT: {context}\n"
		f"ORIGINAL PROMPT: {original_prompt}\n"
		f"CURRENT CONTENT: {current_content}\n"
		f"IMPROVEMENT REQUEST: {tweak or DEFAULT_IMPROVEMENT}\n\n"
		"Please provide an enhanced version that:\n"
		"- Maintains educational standards and alignment with the context\n"
		"- Is more engaging, effective, and age-appropriate\n"
		"- Incorporates the requested improvements\n"
		"- Maintains consistency with the overall lesson\n\n"
		"Provide only the regenerated content without the section heading or additional explanations."
	)
