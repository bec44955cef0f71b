from __future__ import annotations
import logging
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .models import Document

log = logging.getLogger(__name__)


class DocumentStore:
	"""SQLAlchemy-backed persistence for documents, their sections and versions.

	Every write commits on its own; a failed commit rolls the session back so
	no half-applied reconciliation is left behind.
	"""

	def __init__(self, db: Session) -> None:
		self.db = db

	def find_by_id(self, document_id: str) -> Optional[Document]:
		return self.db.get(Document, document_id)

	def find_duplicate(self, actor_id: str, title: str, template_id: str, fingerprint: str) -> Optional[Document]:
		return (
			self.db.query(Document)
			.filter(
				Document.owner_id == actor_id,
				Document.title == title,
				Document.template_id == template_id,
				Document.content_fingerprint == fingerprint,
			)
			.order_by(Document.created_at.desc())
			.first()
		)

	def insert(self, document: Document) -> Document:
		self.db.add(document)
		self._commit()
		self.db.refresh(document)
		return document

	def update(self, document: Document) -> Document:
		self.db.add(document)
		self._commit()
		return document

	def delete(self, document: Document) -> None:
		self.db.delete(document)
		self._commit()

	def list_documents(
		self,
		owner_id: Optional[str] = None,
		*,
		template_id: Optional[str] = None,
		search: Optional[str] = None,
		limit: int = 10,
		offset: int = 0,
	) -> Tuple[List[Document], int]:
		query = self.db.query(Document)
		if owner_id is not None:
			query = query.filter(Document.owner_id == owner_id)
		if template_id and template_id != "all":
			query = query.filter(Document.template_id == template_id)
		if search:
			pattern = f"%{search}%"
			query = query.filter(or_(
				Document.title.ilike(pattern),
				Document.topics_json.ilike(pattern),
				Document.additional_details.ilike(pattern),
			))
		total = query.count()
		rows = query.order_by(Document.updated_at.desc()).offset(offset).limit(limit).all()
		return rows, total

	def _commit(self) -> None:
		try:
			self.db.commit()
		except Exception:
			log.exception("document store commit failed, rolling back")
			self.db.rollback()
			raise
