"""
Template section catalog.

Maps every content template to the ordered list of sections a document of that
kind holds, together with the heading text the model is asked to emit for each
one. The quiz template does not use headings at all; it is represented by
``QUIZ_GRAMMAR`` and parsed question by question.

The table is built once at import time and exposed read-only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union

FALLBACK_SECTION_KEY = "content"
QUIZ_TEMPLATE_ID = "quiz"
BLANK_TEMPLATE_ID = "blank"

# Decorations the model puts in front of a heading: markdown hashes, bold/italic
# markers, an ordinal such as "3." or "3)".
_HEADING_PREFIX = r"^[ \t]*(?:#{1,6}[ \t]*)?(?:[*_]{1,2}[ \t]*)?(?:\d{1,2}[.)][ \t]*)?(?:[*_]{1,2}[ \t]*)?"
# Heading must end the line, or be followed by a colon or a spaced dash; a
# trailing parenthetical such as "(10-12 minutes)" or "(PROS)" is part of the
# heading. "Assessment-based" is not a heading.
_HEADING_SUFFIX = (
	r"(?:[ \t]*\([^)\n]*\))?[ \t]*(?:[*_]{1,2})?[ \t]*"
	r"(?:(?::|[\-–—](?=[ \t]|\r?$))[ \t]*(?:[*_]{1,2}[ \t]*)?|(?=\r?$))"
)


def _phrase_regex(phrase: str) -> str:
	words = []
	for word in phrase.split():
		escaped = re.escape(word)
		escaped = escaped.replace(r"\-", r"[ \t-]?").replace("/", r"[ \t]*/[ \t]*")
		words.append(escaped)
	return r"[ \t]+".join(words)


def compile_heading(phrases: Tuple[str, ...]) -> "re.Pattern[str]":
	# Longest phrase first so "LEARNING OBJECTIVES" wins over "OBJECTIVES"
	ordered = sorted(phrases, key=len, reverse=True)
	alternatives = "|".join(_phrase_regex(p) for p in ordered)
	return re.compile(_HEADING_PREFIX + r"(?:" + alternatives + r")" + _HEADING_SUFFIX, re.IGNORECASE | re.MULTILINE)


@dataclass(frozen=True)
class SectionSpec:
	template_id: str
	key: str
	label: str
	order: int
	phrases: Tuple[str, ...]
	hint: str = ""
	# Any phrase, the canonical label included
	heading: "re.Pattern[str]" = field(default=None, compare=False, repr=False)  # type: ignore[assignment]
	# Canonical label only
	label_heading: "re.Pattern[str]" = field(default=None, compare=False, repr=False)  # type: ignore[assignment]

	def __post_init__(self) -> None:
		if self.heading is None:
			object.__setattr__(self, "heading", compile_heading(self.phrases))
		if self.label_heading is None:
			object.__setattr__(self, "label_heading", compile_heading((self.label,)))


@dataclass(frozen=True)
class QuizGrammar:
	"""Marker for templates parsed question by question instead of by heading."""

	template_id: str
	sections: Tuple[SectionSpec, ...]
	question_marker: "re.Pattern[str]" = field(compare=False, repr=False)


# Match-anything entry used for ``blank`` and for unknown template ids
FALLBACK_SECTION = SectionSpec(
	template_id=BLANK_TEMPLATE_ID,
	key=FALLBACK_SECTION_KEY,
	label="CONTENT",
	order=0,
	phrases=(),
	heading=re.compile(r"\A"),
	label_heading=re.compile(r"\A"),
)


def _build(template_id: str, rows) -> Tuple[SectionSpec, ...]:
	return tuple(
		SectionSpec(template_id=template_id, key=key, label=label, order=i, phrases=(label,) + tuple(alts), hint=hint)
		for i, (key, label, alts, hint) in enumerate(rows)
	)


_LESSON_PLAN = _build("lesson_plan", [
	("objectives", "LEARNING OBJECTIVES", ["OBJECTIVES", "LESSON OBJECTIVES"], "3-5 clear, measurable objectives"),
	("priorKnowledge", "PRIOR KNOWLEDGE", ["PREREQUISITE KNOWLEDGE", "PREREQUISITES"], "What students should already know"),
	("warmup", "WARM-UP ACTIVITY", ["WARM-UP", "STARTER ACTIVITY"], "5-7 minutes, engaging starter activity"),
	("introduction", "INTRODUCTION", [], "10-12 minutes, sets context and real-world connections"),
	("mainActivities", "MAIN ACTIVITIES", ["MAIN ACTIVITY", "LEARNING ACTIVITIES"], "20-25 minutes, hands-on and interactive"),
	("assessment", "ASSESSMENT STRATEGIES", ["ASSESSMENT"], "Formative and summative assessment ideas"),
	("resources", "RESOURCES AND MATERIALS", ["RESOURCES", "MATERIALS"], "Specific resources needed for the lesson"),
	("differentiation", "DIFFERENTIATION STRATEGIES", ["DIFFERENTIATION"], "Support for struggling students and extensions for advanced learners"),
	("homework", "HOMEWORK/EXTENSION ACTIVITIES", ["HOMEWORK", "EXTENSION ACTIVITIES", "HOMEWORK AND EXTENSION"], "Meaningful reinforcement tasks"),
])

_UNIT_PLAN = _build("unit_plan", [
	("overview", "UNIT OVERVIEW", ["OVERVIEW"], "Big ideas and central concepts"),
	("essentialQuestions", "ESSENTIAL QUESTIONS", [], "3-5 guiding questions that drive inquiry"),
	("learningGoals", "LEARNING GOALS", ["GOALS"], "What students will know and be able to do"),
	("sessionBreakdown", "SESSION BREAKDOWN", ["SESSION PLAN", "SESSIONS"], "Detailed plan for each session"),
	("assessments", "ASSESSMENT STRATEGIES", ["ASSESSMENTS", "ASSESSMENT"], "Formative and summative assessments throughout the unit"),
	("resources", "RESOURCES", ["RESOURCES AND MATERIALS", "MATERIALS"], "Materials and resources needed"),
	("differentiation", "DIFFERENTIATION", ["DIFFERENTIATION STRATEGIES"], "Strategies for diverse learners"),
])

_PROJECT = _build("project", [
	("objectives", "PROJECT OBJECTIVES", ["LEARNING OBJECTIVES", "OBJECTIVES"], "Clear learning goals and success criteria"),
	("procedure", "PROCEDURE", ["PROJECT PROCEDURE"], "Step-by-step instructions with a day-wise breakdown"),
	("materials", "MATERIALS REQUIRED", ["MATERIALS", "MATERIALS NEEDED"], "Specific materials and resources needed"),
	("outcomes", "EXPECTED OUTCOMES", ["OUTCOMES", "LEARNING OUTCOMES"], "What students should produce and learn"),
	("evaluation", "EVALUATION CRITERIA", ["EVALUATION", "ASSESSMENT RUBRIC"], "Detailed rubric with clear assessment criteria"),
	("timeline", "TIMELINE", ["PROJECT TIMELINE"], "Project milestones and deadlines"),
])

_GAGNE = _build("gagne_lesson_plan", [
	("gainAttention", "GAIN ATTENTION", [], "Hook students with an engaging starter"),
	("informObjectives", "INFORM OBJECTIVES", ["INFORM LEARNERS OF OBJECTIVES"], "Clearly state what students will learn"),
	("stimulateRecall", "STIMULATE RECALL", ["STIMULATE RECALL OF PRIOR LEARNING"], "Activate prior knowledge"),
	("presentContent", "PRESENT CONTENT", ["PRESENT THE CONTENT"], "Deliver new information effectively"),
	("provideGuidance", "PROVIDE GUIDANCE", ["PROVIDE LEARNING GUIDANCE"], "Scaffold learning with examples"),
	("elicitPerformance", "ELICIT PERFORMANCE", [], "Students practice and apply"),
	("provideFeedback", "PROVIDE FEEDBACK", [], "Correct and reinforce learning"),
	("assessPerformance", "ASSESS PERFORMANCE", [], "Evaluate understanding"),
	("enhanceRetention", "ENHANCE RETENTION", ["ENHANCE RETENTION AND TRANSFER"], "Transfer learning to new contexts"),
])

_DEBATE = _build("debate", [
	("topic", "DEBATE PROPOSITION", ["PROPOSITION", "DEBATE TOPIC", "MOTION"], "Clear statement to debate"),
	("forArguments", "ARGUMENTS FOR", ["PROS"], "3-5 strong arguments with supporting evidence"),
	("againstArguments", "ARGUMENTS AGAINST", ["CONS"], "3-5 strong counter-arguments with evidence"),
	("moderatorGuidelines", "MODERATOR GUIDELINES", ["MODERATOR SCRIPT"], "Script and instructions for the moderator"),
	("evaluationCriteria", "EVALUATION CRITERIA", ["JUDGING CRITERIA"], "Rubric for judging the debate"),
	("timingStructure", "TIMING STRUCTURE", ["TIMING"], "Detailed timing for each phase"),
])

QUIZ_GRAMMAR = QuizGrammar(
	template_id=QUIZ_TEMPLATE_ID,
	sections=_build(QUIZ_TEMPLATE_ID, [
		("questions", "QUESTIONS", [], "Numbered multiple choice questions with four options"),
		("answerKey", "ANSWER KEY", [], "Correct answer and explanation per question"),
	]),
	question_marker=re.compile(r"^[ \t]*(?:[*_]{1,2})?Q(\d+)[ \t]*[.:](?:[*_]{1,2})?[ \t]*", re.IGNORECASE | re.MULTILINE),
)

CATALOG: Mapping[str, Union[Tuple[SectionSpec, ...], QuizGrammar]] = MappingProxyType({
	"lesson_plan": _LESSON_PLAN,
	"unit_plan": _UNIT_PLAN,
	"quiz": QUIZ_GRAMMAR,
	"project": _PROJECT,
	"gagne_lesson_plan": _GAGNE,
	"debate": _DEBATE,
	BLANK_TEMPLATE_ID: (FALLBACK_SECTION,),
})


def sections_for(template_id: Optional[str]) -> Union[Tuple[SectionSpec, ...], QuizGrammar]:
	return CATALOG.get(template_id or "", (FALLBACK_SECTION,))


def specs_for(template_id: Optional[str]) -> Tuple[SectionSpec, ...]:
	"""Section specs for any template, quiz included."""
	entry = sections_for(template_id)
	if isinstance(entry, QuizGrammar):
		return entry.sections
	return entry


def template_ids() -> Tuple[str, ...]:
	return tuple(CATALOG.keys())


def is_known_template(template_id: Optional[str]) -> bool:
	return (template_id or "") in CATALOG


def section_keys(template_id: Optional[str]) -> Tuple[str, ...]:
	return tuple(spec.key for spec in specs_for(template_id))


def find_spec(template_id: Optional[str], section_key: str) -> Optional[SectionSpec]:
	for spec in specs_for(template_id):
		if spec.key == section_key:
			return spec
	return None


def label_for(template_id: Optional[str], section_key: str) -> str:
	spec = find_spec(template_id, section_key)
	if spec is not None:
		return spec.label
	# camelCase -> "CAMEL CASE"
	return re.sub(r"(?<!^)(?=[A-Z])", " ", section_key).upper()
