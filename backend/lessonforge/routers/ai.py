from __future__ import annotations
import logging
from collections import Counter
from datetime import datetime
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .. import catalog, prompts, segmenter
from ..db import get_db
from ..gemini_client import AIProviderError, GeminiClient, get_ai_client
from ..models import AIUsage
from ..permissions import can_use_template, daily_ai_limit, require_permission
from ..reconciler import EmptySectionTextError, SectionNotFoundError, SectionReconciler, estimate_tokens
from ..settings import settings
from ..store import DocumentStore
from .auth import User, get_current_user
from .documents import document_detail, load_owned_document

router = APIRouter(prefix="/ai", tags=["ai"])

log = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	template: str
	title: Optional[str] = None
	grade: Optional[str] = None
	subject: Optional[str] = None
	curriculum: Optional[str] = None
	topics: Union[List[str], str, None] = None
	additional_instructions: Optional[str] = Field(default=None, alias="additionalInstructions")
	duration: Union[int, str, None] = None
	sessions: Union[int, str, None] = None
	difficulty: Optional[str] = None
	num_questions: Union[int, str, None] = Field(default=None, alias="numQuestions")


class RegenerateRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	document_id: str = Field(alias="documentId")
	section: str
	tweak: Optional[str] = None


def describe_provider_error(error: AIProviderError) -> str:
	message = str(error).lower()
	if "api key not valid" in message or "api_key_invalid" in message or "not configured" in message:
		return "Invalid Gemini API key. Please check your configuration."
	if "quota" in message or error.status_code == 429:
		return "AI service quota exceeded. Please try again later."
	if "safety" in message:
		return "Content blocked by safety filters. Please modify your request."
	if "not found" in message or error.status_code == 404:
		return "AI model not available. Please check model configuration."
	return "AI generation failed"


def _start_of_today() -> datetime:
	return datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)


def usage_today(db: Session, username: str) -> int:
	return db.query(AIUsage).filter(AIUsage.username == username, AIUsage.created_at >= _start_of_today()).count()


def _enforce_daily_limit(db: Session, user: User) -> tuple[int, int]:
	used = usage_today(db, user.username)
	limit = daily_ai_limit(user.role)
	if used >= limit:
		raise HTTPException(status_code=429, detail=f"Daily AI generation limit reached ({limit}). Please try again tomorrow.")
	return used, limit


def _record_usage(db: Session, user: User, action: str, **details) -> None:
	try:
		db.add(AIUsage(username=user.username, action=action, **details))
		db.commit()
	except Exception:
		# The document is already saved; a lost usage row must not fail the request
		db.rollback()
		log.exception("failed to record AI usage for %s", user.username)


@router.post("/generate")
async def generate(
	req: GenerateRequest,
	user: User = Depends(require_permission("ai", "generate")),
	db: Session = Depends(get_db),
	client: GeminiClient = Depends(get_ai_client),
):
	template_id = (req.template or "").strip()
	if not catalog.is_known_template(template_id):
		raise HTTPException(status_code=400, detail=f"Unknown template '{template_id}'")
	if not can_use_template(user.role, template_id):
		raise HTTPException(status_code=403, detail=f"Template '{template_id}' is not available for your role")
	used, limit = _enforce_daily_limit(db, user)

	title = prompts.normalize_field(req.title, "Untitled")
	grade = str(prompts.normalize_field(req.grade, "1"))
	subject = prompts.normalize_field(req.subject, "General")
	curriculum = prompts.normalize_field(req.curriculum, "CBSE")
	topics = prompts.normalize_topics(req.topics)
	additional = prompts.normalize_field(req.additional_instructions, "None")
	duration = prompts.normalize_int(req.duration, 45)
	sessions = prompts.normalize_int(req.sessions, 5)
	difficulty = prompts.normalize_field(req.difficulty, "Medium")
	num_questions = prompts.normalize_int(req.num_questions, 10)

	prompt = prompts.build_generation_prompt(
		template_id,
		title=title,
		grade=grade,
		subject=subject,
		curriculum=curriculum,
		topics=topics,
		duration=duration,
		additional_instructions=additional,
		sessions=sessions,
		difficulty=difficulty,
		num_questions=num_questions,
	)
	log.info("generate %s for %s", template_id, user.username)
	raw = await client.generate(prompt)
	sections = segmenter.segment(raw, template_id)
	if not sections:
		raise HTTPException(status_code=502, detail="AI service returned empty content")

	metadata = {
		"grade": grade,
		"subject": subject,
		"curriculum": curriculum,
		"duration": duration,
		"topics": topics,
		"additional_details": additional,
	}
	if template_id == "unit_plan":
		metadata["sessions_count"] = sessions
	if template_id == "quiz":
		metadata["difficulty"] = difficulty
		metadata["num_questions"] = num_questions

	tokens = estimate_tokens(raw)
	result = SectionReconciler(DocumentStore(db)).create(
		actor_id=user.username,
		title=title,
		template_id=template_id,
		sections=sections,
		source_prompt=prompt,
		metadata=metadata,
		ai_model=client.model,
		tokens=tokens,
	)
	document = result.document
	_record_usage(db, user, "generate", template_id=template_id, document_id=document.id, tokens=tokens)
	return {
		"success": True,
		"content": sections,
		"rawContent": raw,
		"tokens": tokens,
		"model": client.model,
		"created": result.created,
		"documentId": document.id,
		"document": document_detail(document),
		"usage": {"today": used + 1, "limit": limit, "remaining": max(0, limit - (used + 1))},
	}


@router.post("/regenerate")
async def regenerate(
	req: RegenerateRequest,
	user: User = Depends(require_permission("ai", "regenerate")),
	db: Session = Depends(get_db),
	client: GeminiClient = Depends(get_ai_client),
):
	document = load_owned_document(db, req.document_id, user, action="regenerate")
	record = document.sections.get(req.section)
	if record is None or not (record.text or "").strip():
		raise HTTPException(status_code=400, detail=str(SectionNotFoundError(req.section)))
	_enforce_daily_limit(db, user)

	# Read before the AI call; the reconciler compares against this record
	current_content = record.text
	original_prompt = record.source_prompt or ""
	context = prompts.build_context(
		title=document.title,
		grade=document.grade,
		subject=document.subject,
		curriculum=document.curriculum,
		template_id=document.template_id,
		duration=document.duration,
		topics=document.topics,
		additional_details=document.additional_details,
	)
	prompt = prompts.build_regeneration_prompt(
		section_label=catalog.label_for(document.template_id, req.section),
		context=context,
		original_prompt=original_prompt,
		current_content=current_content,
		tweak=req.tweak,
	)
	log.info("regenerate %s/%s for %s", document.id, req.section, user.username)
	raw = await client.generate(prompt, max_output_tokens=settings.ai_regenerate_max_output_tokens)

	description = f"Regenerated {req.section} section: {req.tweak or 'General improvement'}"
	try:
		result = SectionReconciler(DocumentStore(db)).regenerate(document, req.section, raw, description, user.username)
	except SectionNotFoundError as e:
		raise HTTPException(status_code=400, detail=str(e))
	except EmptySectionTextError:
		raise HTTPException(status_code=502, detail="AI service returned empty content")

	tokens = estimate_tokens(raw)
	_record_usage(
		db, user, "regenerate",
		template_id=document.template_id, document_id=document.id, section_key=req.section, tokens=tokens,
	)
	return {
		"success": True,
		"content": result.section.text if result.section is not None else current_content,
		"changed": result.changed,
		"tokens": tokens,
		"section": req.section,
		"version": result.document.current_version,
		"document": document_detail(result.document),
	}


@router.get("/usage")
def usage(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	today = _start_of_today()
	month_start = today.replace(day=1)
	rows = (
		db.query(AIUsage.created_at)
		.filter(AIUsage.username == user.username, AIUsage.created_at >= month_start)
		.all()
	)
	per_day = Counter(created_at.date().isoformat() for (created_at,) in rows)
	used = usage_today(db, user.username)
	limit = daily_ai_limit(user.role)
	return {
		"success": True,
		"monthlyUsage": [{"date": day, "count": count} for day, count in sorted(per_day.items())],
		"todayUsage": used,
		"dailyLimit": limit,
		"remainingToday": max(0, limit - used),
	}
