import re

import pytest

from lessonforge import catalog
from lessonforge.segmenter import (
	ANSWER_KEY_PLACEHOLDER,
	MISSING_ANSWER_PLACEHOLDER,
	clean_section_text,
	segment,
)


def test_headings_split_into_sections():
	result = segment("LEARNING OBJECTIVES\nKnow X.\n\nINTRODUCTION\nHook here.", "lesson_plan")
	assert result == {"objectives": "Know X.", "introduction": "Hook here."}


def test_text_without_headings_lands_in_content():
	result = segment("Random prose with no headings.", "lesson_plan")
	assert result == {"content": "Random prose with no headings."}


def test_quiz_question_and_answer_key():
	raw = "Q1. What is 2+2?\nA) 3\nB) 4\nC) 5\nD) 6\nCorrect: B\nExplanation: Basic math."
	result = segment(raw, "quiz")
	assert "Q1. What is 2+2?\nA) 3\nB) 4\nC) 5\nD) 6" in result["questions"]
	assert "Q1. What is 2+2?\nCorrect Answer: B\nExplanation: Basic math." in result["answerKey"]


@pytest.mark.parametrize("raw", ["", "   \n\t", None])
def test_blank_input_gives_empty_map(raw):
	assert segment(raw, "lesson_plan") == {}


def test_full_lesson_plan_with_markdown_headings():
	raw = "\n".join([
		"Here is the plan you asked for.",
		"## **Learning Objectives:**",
		"- Describe photosynthesis",
		"## Prior Knowledge",
		"Plants need water.",
		"## **Warm-Up Activity (5-7 minutes)**",
		"Show a plant.",
		"## Introduction (10-12 minutes)",
		"Why light?",
		"## Main Activities (20-25 minutes)",
		"Experiment.",
		"## Assessment Strategies",
		"Exit ticket.",
		"## Resources and Materials",
		"Leaves.",
		"## Differentiation Strategies",
		"Pairs.",
		"## Homework/Extension Activities",
		"Observe a tree.",
	])
	result = segment(raw, "lesson_plan")
	assert list(result) == list(catalog.section_keys("lesson_plan"))
	assert result["objectives"] == "- Describe photosynthesis"
	assert result["warmup"] == "Show a plant."
	assert result["homework"] == "Observe a tree."
	# preamble before the first heading is discarded
	assert "content" not in result


def test_heading_with_inline_body():
	result = segment("LEARNING OBJECTIVES: Know X.\nINTRODUCTION: Hook.", "lesson_plan")
	assert result == {"objectives": "Know X.", "introduction": "Hook."}


def test_empty_sections_are_dropped():
	result = segment("LEARNING OBJECTIVES\n\nINTRODUCTION\nHook here.", "lesson_plan")
	assert result == {"introduction": "Hook here."}


def test_headings_without_any_body_keep_text_verbatim():
	raw = "LEARNING OBJECTIVES\nINTRODUCTION\n"
	assert segment(raw, "lesson_plan") == {"content": raw.strip()}


def test_out_of_order_heading_is_absorbed_by_catalog_order():
	raw = "LEARNING OBJECTIVES\nKnow X.\nMAIN ACTIVITIES\nDo it.\nINTRODUCTION\nHook."
	result = segment(raw, "lesson_plan")
	assert result == {"objectives": "Know X.\nMAIN ACTIVITIES\nDo it.", "introduction": "Hook."}


def test_line_scan_recognises_loose_headings():
	raw = "\n".join([
		"Sure! Here it is.",
		"- Learning objectives for today",
		"Know X.",
		"• Introduction to the lesson",
		"Hook here.",
	])
	result = segment(raw, "lesson_plan")
	assert result == {"content": "Sure! Here it is.", "objectives": "Know X.", "introduction": "Hook here."}


def test_line_scan_keeps_text_after_colon():
	raw = "> Learning objectives for the class: Know X\nmore detail"
	result = segment(raw, "lesson_plan")
	assert result == {"objectives": "Know X\nmore detail"}


def test_prose_sentence_is_not_a_heading():
	raw = "Introduction to fractions is hard for many students."
	assert segment(raw, "lesson_plan") == {"content": raw}


@pytest.mark.parametrize("template_id", ["blank", "no_such_template"])
def test_blank_and_unknown_templates_keep_whole_text(template_id):
	raw = "LEARNING OBJECTIVES\nKnow X."
	assert segment(raw, template_id) == {"content": raw}


def test_code_fence_is_unwrapped():
	raw = "```markdown\nLEARNING OBJECTIVES\nKnow X.\n```"
	assert segment(raw, "lesson_plan") == {"objectives": "Know X."}


def test_crlf_line_endings():
	raw = "LEARNING OBJECTIVES\r\nKnow X.\r\n\r\nINTRODUCTION\r\nHook here."
	assert segment(raw, "lesson_plan") == {"objectives": "Know X.", "introduction": "Hook here."}


def test_gagne_numbered_headings():
	raw = "1. GAIN ATTENTION (5 minutes)\n   Ask a question.\n\n2. INFORM OBJECTIVES (3 minutes)\n   State goals."
	result = segment(raw, "gagne_lesson_plan")
	assert result == {"gainAttention": "Ask a question.", "informObjectives": "State goals."}


def test_debate_headings_with_parentheticals():
	raw = "DEBATE PROPOSITION\nHomework should be banned.\nARGUMENTS FOR (PROS)\n1. Rest.\nARGUMENTS AGAINST (CONS)\n1. Practice."
	result = segment(raw, "debate")
	assert result == {
		"topic": "Homework should be banned.",
		"forArguments": "1. Rest.",
		"againstArguments": "1. Practice.",
	}


@pytest.mark.parametrize("template_id,raw", [
	("lesson_plan", "LEARNING OBJECTIVES\n\n\nINTRODUCTION\n  \nMAIN ACTIVITIES\nDo it."),
	("unit_plan", "UNIT OVERVIEW\nBig idea.\nESSENTIAL QUESTIONS\n"),
	("project", "random words"),
	("quiz", "Q1. Only a stem"),
	("quiz", "nothing quiz-like"),
])
def test_no_value_is_ever_empty(template_id, raw):
	result = segment(raw, template_id)
	assert result
	assert all(value.strip() for value in result.values())


def test_segment_is_pure():
	raw = "LEARNING OBJECTIVES\nKnow X.\n\nINTRODUCTION\nHook here."
	assert segment(raw, "lesson_plan") == segment(raw, "lesson_plan")


# ---- body lines that look like headings ----

def test_inline_label_in_body_does_not_open_a_section():
	raw = "\n".join([
		"LEARNING OBJECTIVES",
		"Know X.",
		"MAIN ACTIVITIES",
		"Build a model.",
		"**Materials:** cardboard, glue",
		"ASSESSMENT STRATEGIES",
		"Exit ticket.",
		"RESOURCES AND MATERIALS",
		"Textbook ch. 3",
	])
	assert segment(raw, "lesson_plan") == {
		"objectives": "Know X.",
		"mainActivities": "Build a model.\n**Materials:** cardboard, glue",
		"assessment": "Exit ticket.",
		"resources": "Textbook ch. 3",
	}


def test_hyphenated_compound_is_not_a_heading():
	raw = "\n".join([
		"INTRODUCTION",
		"Hook.",
		"Assessment-based tasks will follow in class.",
		"MAIN ACTIVITIES",
		"Experiment.",
		"ASSESSMENT STRATEGIES",
		"Quiz.",
	])
	result = segment(raw, "lesson_plan")
	assert result["introduction"] == "Hook.\nAssessment-based tasks will follow in class."
	assert result["mainActivities"] == "Experiment."
	assert result["assessment"] == "Quiz."


def test_project_procedure_mentioning_materials():
	raw = "\n".join([
		"PROJECT OBJECTIVES",
		"Build a bridge.",
		"PROCEDURE",
		"Materials: straws and tape.",
		"Day 1: design.",
		"MATERIALS REQUIRED",
		"Straws, tape.",
		"EXPECTED OUTCOMES",
		"A bridge.",
		"EVALUATION CRITERIA",
		"Strength.",
		"TIMELINE",
		"Two weeks.",
	])
	assert segment(raw, "project") == {
		"objectives": "Build a bridge.",
		"procedure": "Materials: straws and tape.\nDay 1: design.",
		"materials": "Straws, tape.",
		"outcomes": "A bridge.",
		"evaluation": "Strength.",
		"timeline": "Two weeks.",
	}


def test_debate_moderator_notes_mentioning_timing():
	raw = "\n".join([
		"DEBATE PROPOSITION",
		"Homework should be banned.",
		"ARGUMENTS FOR",
		"Rest.",
		"ARGUMENTS AGAINST",
		"Practice.",
		"MODERATOR GUIDELINES",
		"Timing: 2 minutes per speaker.",
		"Motion: read it aloud first.",
		"EVALUATION CRITERIA",
		"Clarity.",
		"TIMING STRUCTURE",
		"Opening 5 minutes.",
	])
	assert segment(raw, "debate") == {
		"topic": "Homework should be banned.",
		"forArguments": "Rest.",
		"againstArguments": "Practice.",
		"moderatorGuidelines": "Timing: 2 minutes per speaker.\nMotion: read it aloud first.",
		"evaluationCriteria": "Clarity.",
		"timingStructure": "Opening 5 minutes.",
	}


def test_alternative_heading_is_used_when_label_is_missing():
	raw = "OBJECTIVES:\nKnow X.\nINTRODUCTION\nHook.\nMATERIALS\nPaper."
	assert segment(raw, "lesson_plan") == {"objectives": "Know X.", "introduction": "Hook.", "resources": "Paper."}


def test_alternative_heading_does_not_reach_past_later_labels():
	raw = "\n".join([
		"LEARNING OBJECTIVES",
		"Know X.",
		"WARM-UP ACTIVITY",
		"Stretch.",
		"HOMEWORK/EXTENSION ACTIVITIES",
		"Read chapter 2.",
		"Prerequisites: none for this task.",
	])
	assert segment(raw, "lesson_plan") == {
		"objectives": "Know X.",
		"warmup": "Stretch.",
		"homework": "Read chapter 2.\nPrerequisites: none for this task.",
	}



# ---- quiz ----

QUIZ = """Here is your quiz:

Q3. First?
A) a
B) b
C) c
D) d
Correct: A
Explanation: x

**Q3.** Second
continued stem
A. one
B. two
C. three
D. four
Correct Answer: d) four
Explanation: y
and more
"""


def test_quiz_renumbers_and_drops_intro():
	result = segment(QUIZ, "quiz")
	assert result["questions"].startswith("Q1. First?\nA) a")
	assert "Q2. Second continued stem\nA) one\nB) two\nC) three\nD) four" in result["questions"]
	assert "Here is your quiz" not in result["questions"]
	assert "Q2. Second continued stem\nCorrect Answer: D\nExplanation: y and more" in result["answerKey"]


def test_quiz_marker_count_matches_between_sections():
	result = segment(QUIZ, "quiz")
	marker = re.compile(r"^Q\d+\.", re.MULTILINE)
	assert len(marker.findall(result["questions"])) == len(marker.findall(result["answerKey"])) == 2


def test_quiz_colon_markers():
	raw = "Q1: Pick one\nA) yes\nB) no\nCorrect: A"
	result = segment(raw, "quiz")
	assert result["questions"] == "Q1. Pick one\nA) yes\nB) no"
	assert result["answerKey"] == "Q1. Pick one\nCorrect Answer: A\nExplanation:"


def test_quiz_without_options_splits_on_markers():
	raw = "Q1. What is photosynthesis?\nQ2. Define osmosis."
	result = segment(raw, "quiz")
	assert result["questions"] == "Q1. What is photosynthesis?\n\nQ2. Define osmosis."
	assert result["answerKey"] == (
		f"Q1. What is photosynthesis?\n{MISSING_ANSWER_PLACEHOLDER}\n\n"
		f"Q2. Define osmosis.\n{MISSING_ANSWER_PLACEHOLDER}"
	)


def test_quiz_without_markers_is_kept_verbatim():
	raw = "Just some text about plants."
	assert segment(raw, "quiz") == {"questions": raw, "answerKey": ANSWER_KEY_PLACEHOLDER}


# ---- single-section cleanup ----

@pytest.mark.parametrize("raw,expected", [
	("LEARNING OBJECTIVES\nNew objectives.", "New objectives."),
	("**Learning Objectives:** Know Y", "Know Y"),
	("  Just the text.  ", "Just the text."),
	("INTRODUCTION\nHook", "INTRODUCTION\nHook"),
])
def test_clean_section_text(raw, expected):
	assert clean_section_text(raw, "lesson_plan", "objectives") == expected


def test_clean_section_text_for_unknown_section_only_trims():
	assert clean_section_text("  LEARNING OBJECTIVES\nX ", "blank", "content") == "LEARNING OBJECTIVES\nX"
