"""
Response segmenter.

Folds the free text returned by the model into the section map of a template.
Every template except ``quiz`` is split on its catalog headings; quizzes are
parsed question by question. Each strategy degrades through a fallback cascade
and ends, at worst, with the input returned verbatim, so segmentation never
fails on non-empty input.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from . import catalog
from .catalog import FALLBACK_SECTION_KEY, QuizGrammar, SectionSpec

log = logging.getLogger(__name__)

# Scanner states
SEEKING_HEADING = "seeking-heading"
IN_SECTION = "in-section"
IN_QUESTION_STEM = "in-question-stem"
IN_OPTIONS = "in-options"
IN_ANSWER = "in-answer"

QUESTIONS_KEY = "questions"
ANSWER_KEY_KEY = "answerKey"
ANSWER_KEY_PLACEHOLDER = "Answer key not available. Review the questions and add the answers manually."
MISSING_ANSWER_PLACEHOLDER = "Correct Answer: Not provided\nExplanation: Answer not extracted, review manually."

_CODE_FENCE = re.compile(r"^\s*```[\w-]*[ \t]*\n(.*?)\n?```\s*$", re.DOTALL)
_DECORATION_HEAD = re.compile(r"^[ \t]*(?:[>#•*_\-][ \t]*)*(?:\d{1,2}[.)][ \t]*)?(?:[*_]{1,2}[ \t]*)?")
_DECORATION_TAIL = re.compile(r"[ \t*_]+$")
_PARENTHETICAL = re.compile(r"\([^)]*\)")
_NON_WORD = re.compile(r"[^A-Z0-9 ]+")

_OPTION_LINE = re.compile(r"^(?:[*_]{1,2})?\(?([A-D])[).](?:[*_]{1,2})?[ \t]*(.*)$")
_CORRECT_LINE = re.compile(r"^(?:[*_]{1,2})?correct(?:[ \t]+answer)?(?:[*_]{1,2})?[ \t]*:(?:[*_]{1,2})?[ \t]*(.*)$", re.IGNORECASE)
_EXPLANATION_LINE = re.compile(r"^(?:[*_]{1,2})?explanation(?:[*_]{1,2})?[ \t]*:(?:[*_]{1,2})?[ \t]*(.*)$", re.IGNORECASE)
_ANSWER_LETTER = re.compile(r"^[(\[]?([A-D])\b", re.IGNORECASE)


def _normalize(raw_text: Optional[str]) -> str:
	text = (raw_text or "").replace("\r\n", "\n").replace("\r", "\n")
	fenced = _CODE_FENCE.match(text)
	if fenced:
		text = fenced.group(1)
	return text


def _drop_empty(sections: Dict[str, str]) -> Dict[str, str]:
	return {key: value.strip() for key, value in sections.items() if value and value.strip()}


def segment(raw_text: Optional[str], template_id: Optional[str]) -> Dict[str, str]:
	"""Split generated text into ``{section_key: text}`` for the given template.

	Sections without content are omitted. The result is empty only when the
	input itself is blank.
	"""
	text = _normalize(raw_text)
	if not text.strip():
		return {}
	grammar = catalog.sections_for(template_id)
	if isinstance(grammar, QuizGrammar):
		return _drop_empty(_segment_quiz(text, grammar))
	sections = _drop_empty(_segment_by_headings(text, grammar))
	if not sections:
		# Headings were found but none had a body
		log.debug("segment: headings without content for %s, keeping text verbatim", template_id)
		sections = {FALLBACK_SECTION_KEY: text.strip()}
	return sections


def clean_section_text(raw_text: Optional[str], template_id: Optional[str], section_key: str) -> str:
	"""Trim a single-section response and drop an echoed heading for that section."""
	text = _normalize(raw_text).strip()
	spec = catalog.find_spec(template_id, section_key)
	if spec is None or not spec.phrases:
		return text
	echoed = spec.heading.match(text)
	if echoed:
		return text[echoed.end():].strip()
	return text


# ---- heading-anchored segmentation ----

def _segment_by_headings(text: str, specs: Tuple[SectionSpec, ...]) -> Dict[str, str]:
	# Headings are consumed in catalog order, each search starting after the
	# previous heading: a heading that shows up earlier than its catalog
	# position ends up inside the body of the section before it. Alternative
	# phrasings are tried only when the canonical label is absent, so inline
	# labels such as "Materials:" in a body do not open a section.
	found: List[Tuple[SectionSpec, "re.Match[str]"]] = []
	pos = 0
	for i, spec in enumerate(specs):
		match = spec.label_heading.search(text, pos)
		if match is None:
			match = spec.heading.search(text, pos, _next_label_start(text, specs[i + 1:], pos))
		if match is not None:
			found.append((spec, match))
			pos = match.end()
	if not found:
		log.debug("segment: no anchored heading matched, falling back to line scan")
		return _scan_lines(text, specs)

	sections: Dict[str, str] = {spec.key: "" for spec in specs}
	for i, (spec, match) in enumerate(found):
		end = found[i + 1][1].start() if i + 1 < len(found) else len(text)
		sections[spec.key] = text[match.end():end]
	return sections


def _next_label_start(text: str, specs: Tuple[SectionSpec, ...], pos: int) -> int:
	# An alternative phrasing never reaches past a later section's label
	starts = [m.start() for m in (spec.label_heading.search(text, pos) for spec in specs) if m is not None]
	return min(starts, default=len(text))


def _normalize_heading(value: str) -> str:
	value = _PARENTHETICAL.sub(" ", value.upper())
	value = value.replace("-", " ").replace("/", " ").replace("&", " AND ")
	value = _NON_WORD.sub(" ", value)
	return " ".join(value.split())


def _heading_keywords(specs: Tuple[SectionSpec, ...]) -> List[Tuple[str, str]]:
	pairs = [(_normalize_heading(phrase), spec.key) for spec in specs for phrase in spec.phrases]
	# Longest phrase first so a specific heading beats its shorter alternative
	pairs.sort(key=lambda pair: len(pair[0]), reverse=True)
	return pairs


def _loose_heading(line: str, keywords: List[Tuple[str, str]]) -> Optional[Tuple[str, str]]:
	"""Return ``(section_key, trailing_text)`` when ``line`` reads as a heading."""
	stripped = _DECORATION_TAIL.sub("", _DECORATION_HEAD.sub("", line)).strip()
	if not stripped:
		return None
	head, separator, rest = stripped.partition(":")
	normalized = _normalize_heading(head)
	if not normalized:
		return None
	for phrase, key in keywords:
		if normalized != phrase and not normalized.startswith(phrase + " "):
			continue
		if separator:
			return key, rest.strip(" \t*_")
		if normalized == phrase:
			return key, ""
		# Title-like line ("Learning Objectives for Photosynthesis"), not prose
		if not stripped.endswith((".", "?", "!")):
			return key, ""
	return None


def _scan_lines(text: str, specs: Tuple[SectionSpec, ...]) -> Dict[str, str]:
	keywords = _heading_keywords(specs)
	state = SEEKING_HEADING
	current = FALLBACK_SECTION_KEY
	buckets: Dict[str, List[str]] = {}
	for line in text.split("\n"):
		heading = _loose_heading(line, keywords) if keywords else None
		if heading is not None:
			current, trailing = heading
			state = IN_SECTION
			bucket = buckets.setdefault(current, [])
			if trailing:
				bucket.append(trailing)
			continue
		key = current if state == IN_SECTION else FALLBACK_SECTION_KEY
		buckets.setdefault(key, []).append(line)
	return {key: "\n".join(lines) for key, lines in buckets.items()}


# ---- quiz segmentation ----

@dataclass
class _QuestionBlock:
	stem: str = ""
	options: List[str] = field(default_factory=list)
	correct: str = ""
	explanation: str = ""

	def is_complete(self) -> bool:
		return bool(self.stem) and bool(self.options)


def _answer_letter(value: str) -> str:
	value = value.strip().strip("*_").strip()
	letter = _ANSWER_LETTER.match(value)
	if letter:
		return letter.group(1).upper()
	return value


def _scan_questions(text: str, marker: "re.Pattern[str]") -> List[_QuestionBlock]:
	blocks: List[_QuestionBlock] = []
	current: Optional[_QuestionBlock] = None
	state = SEEKING_HEADING
	for raw_line in text.split("\n"):
		line = raw_line.strip()
		if not line:
			continue
		question = marker.match(line)
		if question:
			if current is not None and current.is_complete():
				blocks.append(current)
			current = _QuestionBlock(stem=line[question.end():].strip())
			state = IN_QUESTION_STEM
			continue
		if current is None:
			continue
		option = _OPTION_LINE.match(line)
		if option and state in (IN_QUESTION_STEM, IN_OPTIONS) and len(current.options) < 4:
			current.options.append(option.group(2).strip())
			state = IN_OPTIONS
			continue
		correct = _CORRECT_LINE.match(line)
		if correct:
			current.correct = _answer_letter(correct.group(1))
			state = IN_ANSWER
			continue
		explanation = _EXPLANATION_LINE.match(line)
		if explanation:
			current.explanation = explanation.group(1).strip()
			state = IN_ANSWER
			continue
		if state == IN_ANSWER:
			if current.explanation:
				current.explanation = f"{current.explanation} {line}"
			continue
		current.stem = f"{current.stem} {line}".strip()
	if current is not None and current.is_complete():
		blocks.append(current)
	return blocks


def _render_questions(blocks: List[_QuestionBlock]) -> Dict[str, str]:
	questions: List[str] = []
	answers: List[str] = []
	# Renumbered from 1 whatever numbering the model used
	for number, block in enumerate(blocks, start=1):
		options = "\n".join(f"{chr(ord('A') + i)}) {text}" for i, text in enumerate(block.options))
		questions.append(f"Q{number}. {block.stem}\n{options}")
		answers.append("\n".join([
			f"Q{number}. {block.stem}",
			f"Correct Answer: {block.correct}".rstrip(),
			f"Explanation: {block.explanation}".rstrip(),
		]))
	return {QUESTIONS_KEY: "\n\n".join(questions), ANSWER_KEY_KEY: "\n\n".join(answers)}


def _split_on_markers(text: str, marker: "re.Pattern[str]") -> List[str]:
	matches = list(marker.finditer(text))
	chunks: List[str] = []
	for i, match in enumerate(matches):
		end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
		chunk = text[match.end():end].strip()
		if chunk:
			chunks.append(chunk)
	return chunks


def _render_chunks(chunks: List[str]) -> Dict[str, str]:
	questions: List[str] = []
	answers: List[str] = []
	for number, chunk in enumerate(chunks, start=1):
		first_line = chunk.split("\n", 1)[0].strip()
		questions.append(f"Q{number}. {chunk}")
		answers.append(f"Q{number}. {first_line}\n{MISSING_ANSWER_PLACEHOLDER}")
	return {QUESTIONS_KEY: "\n\n".join(questions), ANSWER_KEY_KEY: "\n\n".join(answers)}


def _segment_quiz(text: str, grammar: QuizGrammar) -> Dict[str, str]:
	marker = grammar.question_marker
	first = marker.search(text)
	# Introductory prose before the first question is discarded
	blocks = _scan_questions(text[first.start():], marker) if first else []
	if blocks:
		return _render_questions(blocks)

	log.debug("segment: no structured questions found, splitting on question markers")
	chunks = _split_on_markers(text, marker)
	if chunks:
		return _render_chunks(chunks)

	log.debug("segment: no question markers found, keeping quiz text verbatim")
	return {QUESTIONS_KEY: text.strip(), ANSWER_KEY_KEY: ANSWER_KEY_PLACEHOLDER}
