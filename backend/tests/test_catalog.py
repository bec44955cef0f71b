import pytest

from lessonforge import catalog
from lessonforge.catalog import CATALOG, FALLBACK_SECTION_KEY, QUIZ_GRAMMAR, QuizGrammar


HEADING_TEMPLATES = [t for t in catalog.template_ids() if not isinstance(CATALOG[t], QuizGrammar)]


@pytest.mark.parametrize("template_id", catalog.template_ids())
def test_section_keys_are_unique_and_ordered(template_id):
	specs = catalog.specs_for(template_id)
	keys = [spec.key for spec in specs]
	assert len(keys) == len(set(keys))
	assert [spec.order for spec in specs] == list(range(len(specs)))


def test_quiz_is_the_only_question_grammar():
	assert catalog.sections_for("quiz") is QUIZ_GRAMMAR
	assert catalog.section_keys("quiz") == ("questions", "answerKey")
	assert [t for t in catalog.template_ids() if isinstance(CATALOG[t], QuizGrammar)] == ["quiz"]


@pytest.mark.parametrize("template_id", ["blank", "no_such_template", "", None])
def test_blank_and_unknown_templates_fall_back_to_single_content_section(template_id):
	assert catalog.section_keys(template_id) == (FALLBACK_SECTION_KEY,)


def test_unknown_template_is_not_known():
	assert catalog.is_known_template("lesson_plan")
	assert catalog.is_known_template("blank")
	assert not catalog.is_known_template("no_such_template")
	assert not catalog.is_known_template(None)


def test_catalog_is_read_only():
	with pytest.raises(TypeError):
		CATALOG["essay"] = ()  # type: ignore[index]


@pytest.mark.parametrize("line", [
	"LEARNING OBJECTIVES",
	"Learning Objectives:",
	"## **Learning Objectives:**",
	"1. LEARNING OBJECTIVES (3 minutes)",
	"**LEARNING OBJECTIVES** - by the end of class",
])
def test_heading_tolerates_markdown_and_numbering(line):
	spec = catalog.find_spec("lesson_plan", "objectives")
	assert spec.heading.search(line)


def test_heading_does_not_match_inside_prose():
	spec = catalog.find_spec("lesson_plan", "introduction")
	assert spec.heading.search("In this introduction we cover fractions.") is None


def test_hyphenated_and_slashed_phrases():
	warmup = catalog.find_spec("lesson_plan", "warmup")
	homework = catalog.find_spec("lesson_plan", "homework")
	assert warmup.heading.search("WARM UP ACTIVITY (5-7 minutes)")
	assert homework.heading.search("HOMEWORK / EXTENSION ACTIVITIES")


def test_label_for():
	assert catalog.label_for("lesson_plan", "mainActivities") == "MAIN ACTIVITIES"
	assert catalog.label_for("quiz", "answerKey") == "ANSWER KEY"
	assert catalog.label_for("lesson_plan", "extraNotes") == "EXTRA NOTES"


def test_every_heading_template_has_phrases():
	for template_id in HEADING_TEMPLATES:
		if template_id == "blank":
			continue
		for spec in catalog.specs_for(template_id):
			assert spec.label in spec.phrases
			assert spec.hint


@pytest.mark.parametrize("line,is_heading", [
	("ASSESSMENT - weekly quiz", True),
	("ASSESSMENT -", True),
	("Assessment-based tasks will follow.", False),
])
def test_dash_separates_only_when_spaced(line, is_heading):
	spec = catalog.find_spec("lesson_plan", "assessment")
	assert bool(spec.heading.search(line)) is is_heading


def test_label_heading_ignores_alternatives():
	spec = catalog.find_spec("lesson_plan", "resources")
	assert spec.heading.search("**Materials:** glue")
	assert spec.label_heading.search("**Materials:** glue") is None
	assert spec.label_heading.search("## Resources and Materials")
