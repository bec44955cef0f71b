from fastapi import APIRouter, Depends, HTTPException

from .. import catalog
from ..catalog import QuizGrammar
from ..permissions import can_use_template
from .auth import User, get_current_user

router = APIRouter(prefix="/templates", tags=["templates"])

TEMPLATE_INFO = {
	"lesson_plan": {"title": "Lesson Plan", "category": "lesson", "description": "Single lesson with objectives, activities and assessment"},
	"unit_plan": {"title": "Unit Plan", "category": "lesson", "description": "Multi-session unit built around essential questions"},
	"quiz": {"title": "Quiz", "category": "assessment", "description": "Multiple choice questions with an answer key"},
	"project": {"title": "Project", "category": "project", "description": "Project-based learning plan with timeline and rubric"},
	"gagne_lesson_plan": {"title": "Gagné Lesson Plan", "category": "lesson", "description": "Lesson structured on Gagné's Nine Events of Instruction"},
	"debate": {"title": "Debate", "category": "other", "description": "Structured debate with arguments, moderation and judging"},
	"blank": {"title": "Blank", "category": "other", "description": "Free-form content in a single section"},
}


def _describe(template_id: str, user: User) -> dict:
	entry = catalog.sections_for(template_id)
	info = TEMPLATE_INFO.get(template_id, {"title": template_id, "category": "other", "description": ""})
	return {
		"key": template_id,
		**info,
		"grammar": "quiz" if isinstance(entry, QuizGrammar) else "headings",
		"sections": [
			{"name": spec.key, "label": spec.label, "order": spec.order, "description": spec.hint}
			for spec in catalog.specs_for(template_id)
		],
		"accessible": can_use_template(user.role, template_id),
	}


@router.get("")
def list_templates(user: User = Depends(get_current_user)):
	return {"templates": [_describe(t, user) for t in catalog.template_ids()]}


@router.get("/{template_id}")
def get_template(template_id: str, user: User = Depends(get_current_user)):
	if not catalog.is_known_template(template_id):
		raise HTTPException(status_code=404, detail="Template not found")
	return _describe(template_id, user)
