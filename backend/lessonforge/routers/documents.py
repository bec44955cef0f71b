from __future__ import annotations
import math
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from .. import catalog
from ..db import get_db
from ..models import Document, DocumentSection, DocumentVersion
from ..permissions import has_permission, require_permission
from ..reconciler import SectionNotFoundError, SectionReconciler, VersionNotFoundError
from ..store import DocumentStore
from .auth import User, get_current_user


router = APIRouter(prefix="/documents", tags=["documents"])


def section_payload(template_id: str, record: DocumentSection) -> Dict[str, Any]:
	return {
		"name": record.section_key,
		"label": catalog.label_for(template_id, record.section_key),
		"content": record.text,
		"isGenerated": record.is_generated,
		"lastRegenerated": record.last_regenerated_at.isoformat() if record.last_regenerated_at else None,
		"wordCount": record.word_count,
	}


def version_payload(version: DocumentVersion) -> Dict[str, Any]:
	return {
		"versionNumber": version.version_number,
		"section": version.section_key,
		"previousContent": version.previous_text,
		"newContent": version.new_text,
		"description": version.change_description,
		"createdBy": version.actor_id,
		"createdAt": version.created_at.isoformat() if version.created_at else None,
	}


def document_summary(document: Document) -> Dict[str, Any]:
	return {
		"id": document.id,
		"title": document.title,
		"template": document.template_id,
		"grade": document.grade,
		"subject": document.subject,
		"curriculum": document.curriculum,
		"createdBy": document.owner_id,
		"currentVersion": document.current_version,
		"wordCount": document.word_count,
		"readingTime": document.reading_time,
		"createdAt": document.created_at.isoformat() if document.created_at else None,
		"updatedAt": document.updated_at.isoformat() if document.updated_at else None,
	}


def document_detail(document: Document, *, include_versions: bool = False) -> Dict[str, Any]:
	ordered = sorted(document.sections.values(), key=lambda s: s.position or 0)
	detail = document_summary(document)
	detail.update({
		"duration": document.duration,
		"sessions": document.sessions_count,
		"difficulty": document.difficulty,
		"numQuestions": document.num_questions,
		"topics": document.topics,
		"additionalDetails": document.additional_details,
		"contentFingerprint": document.content_fingerprint,
		"aiMetadata": {"model": document.ai_model, "totalTokens": document.total_tokens},
		"sections": {record.section_key: section_payload(document.template_id, record) for record in ordered},
	})
	if include_versions:
		detail["versions"] = [version_payload(v) for v in document.versions]
	return detail


def load_owned_document(db: Session, document_id: str, user: User, *, action: str = "access") -> Document:
	document = DocumentStore(db).find_by_id(document_id)
	if document is None:
		raise HTTPException(status_code=404, detail="Document not found")
	if document.owner_id != user.username and user.role != "admin":
		raise HTTPException(status_code=403, detail=f"You can only {action} your own documents")
	return document


@router.get("")
def list_documents(
	template: Optional[str] = None,
	search: Optional[str] = None,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=10, ge=1, le=100),
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
):
	owner = None if has_permission(user.role, "content", "read_all") else user.username
	rows, total = DocumentStore(db).list_documents(
		owner,
		template_id=template,
		search=search,
		limit=limit,
		offset=(page - 1) * limit,
	)
	return {
		"documents": [document_summary(d) for d in rows],
		"totalPages": math.ceil(total / limit),
		"currentPage": page,
		"total": total,
	}


@router.get("/{document_id}")
def get_document(
	document_id: str,
	include_versions: bool = False,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
):
	document = load_owned_document(db, document_id, user)
	return document_detail(document, include_versions=include_versions)


@router.get("/{document_id}/sections")
def get_sections(document_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	document = load_owned_document(db, document_id, user)
	ordered = sorted(document.sections.values(), key=lambda s: s.position or 0)
	return {
		"document": {"id": document.id, "title": document.title, "template": document.template_id},
		"availableSections": [section_payload(document.template_id, r) for r in ordered if (r.text or "").strip()],
	}


@router.get("/{document_id}/versions")
def get_versions(document_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	document = load_owned_document(db, document_id, user)
	return {
		"currentVersion": document.current_version,
		"versions": [version_payload(v) for v in document.versions],
	}


@router.post("/{document_id}/versions/{version_number}/restore")
def restore_version(
	document_id: str,
	version_number: int,
	user: User = Depends(require_permission("content", "restore")),
	db: Session = Depends(get_db),
):
	document = load_owned_document(db, document_id, user, action="restore")
	try:
		result = SectionReconciler(DocumentStore(db)).restore(document, version_number, user.username)
	except VersionNotFoundError as e:
		raise HTTPException(status_code=404, detail=str(e))
	except SectionNotFoundError as e:
		raise HTTPException(status_code=400, detail=str(e))
	return {
		"success": True,
		"changed": result.changed,
		"version": result.document.current_version,
		"document": document_detail(result.document),
	}


@router.delete("/{document_id}")
def delete_document(
	document_id: str,
	user: User = Depends(require_permission("content", "delete")),
	db: Session = Depends(get_db),
):
	document = load_owned_document(db, document_id, user, action="delete")
	DocumentStore(db).delete(document)
	return {"success": True, "message": "Document deleted successfully"}
