from __future__ import annotations
import json
import math
from datetime import datetime
from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import attribute_keyed_dict, relationship
from .db import Base


WORDS_PER_MINUTE = 200


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	email = Column(String(256), nullable=True)
	# admin | teacher | student
	role = Column(String(16), default="teacher", nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Document(Base):
	__tablename__ = "documents"
	id = Column(String(32), primary_key=True)
	owner_id = Column(String(128), index=True, nullable=False)
	title = Column(String(256), nullable=False)
	template_id = Column(String(32), index=True, nullable=False)
	grade = Column(String(32), nullable=True)
	subject = Column(String(128), nullable=True)
	curriculum = Column(String(32), nullable=True)
	duration = Column(Integer, nullable=True)
	sessions_count = Column(Integer, nullable=True)
	difficulty = Column(String(16), nullable=True)
	num_questions = Column(Integer, nullable=True)
	topics_json = Column(Text, nullable=True)
	additional_details = Column(Text, nullable=True)
	# Whole-document hash over the serialized section map
	content_fingerprint = Column(String(64), index=True, nullable=False)
	current_version = Column(Integer, default=0, nullable=False)
	ai_model = Column(String(64), nullable=True)
	total_tokens = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	sections = relationship(
		"DocumentSection",
		collection_class=attribute_keyed_dict("section_key"),
		cascade="all, delete-orphan",
		back_populates="document",
	)
	versions = relationship(
		"DocumentVersion",
		order_by="DocumentVersion.version_number",
		cascade="all, delete-orphan",
		back_populates="document",
	)

	@property
	def topics(self) -> list[str]:
		if not self.topics_json:
			return []
		return json.loads(self.topics_json)

	@topics.setter
	def topics(self, value: list[str]) -> None:
		self.topics_json = json.dumps(list(value or []))

	@property
	def word_count(self) -> int:
		return sum(s.word_count or 0 for s in self.sections.values())

	@property
	def reading_time(self) -> int:
		return math.ceil(self.word_count / WORDS_PER_MINUTE)

	def section_map(self) -> dict[str, str]:
		"""Section key -> text for every section holding content, in insertion order."""
		ordered = sorted(self.sections.values(), key=lambda s: s.position or 0)
		return {s.section_key: s.text for s in ordered if s.text and s.text.strip()}


class DocumentSection(Base):
	__tablename__ = "document_sections"
	__table_args__ = (UniqueConstraint("document_id", "section_key", name="uq_document_section"),)
	id = Column(Integer, primary_key=True, autoincrement=True)
	document_id = Column(String(32), ForeignKey("documents.id", ondelete="CASCADE"), index=True, nullable=False)
	section_key = Column(String(64), nullable=False)
	position = Column(Integer, default=0, nullable=False)
	text = Column(Text, default="", nullable=False)
	# Prompt of the original generation; regenerations never overwrite it
	source_prompt = Column(Text, default="", nullable=False)
	is_generated = Column(Boolean, default=False, nullable=False)
	last_regenerated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	content_fingerprint = Column(String(64), nullable=False)
	word_count = Column(Integer, default=0, nullable=False)

	document = relationship("Document", back_populates="sections")


class DocumentVersion(Base):
	__tablename__ = "document_versions"
	__table_args__ = (UniqueConstraint("document_id", "version_number", name="uq_document_version"),)
	id = Column(Integer, primary_key=True, autoincrement=True)
	document_id = Column(String(32), ForeignKey("documents.id", ondelete="CASCADE"), index=True, nullable=False)
	version_number = Column(Integer, nullable=False)
	# NULL marks a whole-document snapshot
	section_key = Column(String(64), nullable=True)
	previous_text = Column(Text, default="", nullable=False)
	new_text = Column(Text, default="", nullable=False)
	change_description = Column(Text, default="", nullable=False)
	actor_id = Column(String(128), nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	document = relationship("Document", back_populates="versions")


class AIUsage(Base):
	__tablename__ = "ai_usage"
	id = Column(Integer, primary_key=True, autoincrement=True)
	username = Column(String(128), index=True, nullable=False)
	# generate | regenerate
	action = Column(String(16), nullable=False)
	template_id = Column(String(32), nullable=True)
	document_id = Column(String(32), nullable=True)
	section_key = Column(String(64), nullable=True)
	tokens = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, index=True, nullable=False)
