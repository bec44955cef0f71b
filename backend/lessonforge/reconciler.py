"""
Section reconciler.

Applies segmented model output to a stored document. Create mode builds a new
document from a full segmentation (or refreshes an identical one already
saved by the same author); regenerate mode swaps the text of exactly one
existing section. Every content change appends one version entry and bumps
``current_version`` by one; unchanged content writes nothing.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from . import catalog, segmenter
from .models import Document, DocumentSection, DocumentVersion
from .store import DocumentStore

log = logging.getLogger(__name__)

INITIAL_DESCRIPTION = "Initial generation"

# Document columns a caller may set alongside the generated content
_METADATA_FIELDS = (
	"grade",
	"subject",
	"curriculum",
	"duration",
	"sessions_count",
	"difficulty",
	"num_questions",
	"topics",
	"additional_details",
)


class SectionNotFoundError(LookupError):
	def __init__(self, section_key: str) -> None:
		super().__init__(f"Section '{section_key}' not found or empty in this document")
		self.section_key = section_key


class VersionNotFoundError(LookupError):
	def __init__(self, version_number: int) -> None:
		super().__init__(f"Version {version_number} not found")
		self.version_number = version_number


class EmptySectionTextError(ValueError):
	pass


def fingerprint(text: Optional[str]) -> str:
	return hashlib.sha256((text or "").strip().encode("utf-8")).hexdigest()


def document_fingerprint(sections: Mapping[str, str]) -> str:
	normalized = {key: (value or "").strip() for key, value in sections.items()}
	payload = json.dumps(normalized, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
	return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def serialize_sections(sections: Mapping[str, str]) -> str:
	return json.dumps(dict(sections), ensure_ascii=False, indent=2)


def word_count(text: Optional[str]) -> int:
	return len((text or "").split())


def estimate_tokens(text: Optional[str]) -> int:
	# Rough provider-agnostic estimate: four characters per token
	return math.ceil(len(text or "") / 4)


@dataclass
class ReconcileResult:
	document: Document
	changed: bool
	created: bool = False
	section: Optional[DocumentSection] = None
	version: Optional[DocumentVersion] = None


class SectionReconciler:
	def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = datetime.utcnow) -> None:
		self.store = store
		self.clock = clock

	def create(
		self,
		*,
		actor_id: str,
		title: str,
		template_id: str,
		sections: Mapping[str, str],
		source_prompt: str,
		metadata: Optional[Mapping[str, Any]] = None,
		ai_model: Optional[str] = None,
		tokens: int = 0,
	) -> ReconcileResult:
		content: Dict[str, str] = {key: text.strip() for key, text in sections.items() if text and text.strip()}
		if not content:
			raise EmptySectionTextError("generated content has no sections")
		now = self.clock()
		doc_fingerprint = document_fingerprint(content)

		existing = self.store.find_duplicate(actor_id, title, template_id, doc_fingerprint)
		if existing is not None:
			# Same author, same title and template, same content: a repeated submission
			for record in existing.sections.values():
				record.source_prompt = source_prompt
				record.last_regenerated_at = now
			self._apply_metadata(existing, metadata)
			existing.ai_model = ai_model or existing.ai_model
			existing.total_tokens = (existing.total_tokens or 0) + tokens
			existing.updated_at = now
			self.store.update(existing)
			log.info("duplicate generation for document %s suppressed (actor=%s)", existing.id, actor_id)
			return ReconcileResult(document=existing, changed=False, created=False)

		document = Document(
			id=uuid.uuid4().hex,
			owner_id=actor_id,
			title=title,
			template_id=template_id,
			content_fingerprint=doc_fingerprint,
			current_version=0,
			ai_model=ai_model,
			total_tokens=tokens,
			created_at=now,
			updated_at=now,
		)
		self._apply_metadata(document, metadata)
		for position, (key, text) in enumerate(content.items()):
			document.sections[key] = DocumentSection(
				section_key=key,
				position=position,
				text=text,
				source_prompt=source_prompt,
				is_generated=True,
				last_regenerated_at=now,
				content_fingerprint=fingerprint(text),
				word_count=word_count(text),
			)
		version = self._append_version(
			document,
			section_key=None,
			previous_text="",
			new_text=serialize_sections(content),
			description=INITIAL_DESCRIPTION,
			actor_id=actor_id,
			now=now,
		)
		self.store.insert(document)
		log.info("created document %s (%s, %d sections)", document.id, template_id, len(content))
		return ReconcileResult(document=document, changed=True, created=True, version=version)

	def regenerate(
		self,
		document: Document,
		section_key: str,
		new_raw_text: Optional[str],
		change_description: Optional[str],
		actor_id: str,
	) -> ReconcileResult:
		record = document.sections.get(section_key)
		if record is None or not (record.text or "").strip():
			raise SectionNotFoundError(section_key)
		new_text = segmenter.clean_section_text(new_raw_text, document.template_id, section_key)
		if not new_text:
			raise EmptySectionTextError(f"regenerated content for '{section_key}' is empty")
		if fingerprint(new_text) == record.content_fingerprint:
			log.info("regeneration of %s/%s produced identical content, nothing written", document.id, section_key)
			return ReconcileResult(document=document, changed=False, section=record)
		description = change_description or f"Regenerated {section_key} section"
		return self._replace_section(document, record, new_text, description, actor_id)

	def restore(self, document: Document, version_number: int, actor_id: str) -> ReconcileResult:
		entry = next((v for v in document.versions if v.version_number == version_number), None)
		if entry is None:
			raise VersionNotFoundError(version_number)

		if entry.section_key is not None:
			record = document.sections.get(entry.section_key)
			if record is None:
				raise SectionNotFoundError(entry.section_key)
			target = (entry.new_text or "").strip()
			if fingerprint(target) == record.content_fingerprint:
				return ReconcileResult(document=document, changed=False, section=record)
			label = catalog.label_for(document.template_id, entry.section_key)
			description = f"Restored {label} from version {version_number}"
			return self._replace_section(document, record, target, description, actor_id, regenerated=False)

		snapshot = json.loads(entry.new_text or "{}")
		target_map = {key: text.strip() for key, text in snapshot.items() if text and text.strip()}
		if document_fingerprint(target_map) == document.content_fingerprint:
			return ReconcileResult(document=document, changed=False)
		missing = [key for key in target_map if key not in document.sections]
		if missing:
			raise SectionNotFoundError(missing[0])

		now = self.clock()
		previous = serialize_sections(document.section_map())
		for key, text in target_map.items():
			record = document.sections[key]
			if fingerprint(text) != record.content_fingerprint:
				self._set_text(record, text, now)
		document.content_fingerprint = document_fingerprint(document.section_map())
		document.updated_at = now
		version = self._append_version(
			document,
			section_key=None,
			previous_text=previous,
			new_text=serialize_sections(target_map),
			description=f"Restored document from version {version_number}",
			actor_id=actor_id,
			now=now,
		)
		self.store.update(document)
		log.info("restored document %s to version %d as version %d", document.id, version_number, version.version_number)
		return ReconcileResult(document=document, changed=True, version=version)

	def _replace_section(
		self,
		document: Document,
		record: DocumentSection,
		new_text: str,
		description: str,
		actor_id: str,
		regenerated: bool = True,
	) -> ReconcileResult:
		now = self.clock()
		previous_text = record.text
		# source_prompt is left untouched so later regenerations still see the original intent
		self._set_text(record, new_text, now)
		if regenerated:
			record.is_generated = True
		document.content_fingerprint = document_fingerprint(document.section_map())
		document.updated_at = now
		version = self._append_version(
			document,
			section_key=record.section_key,
			previous_text=previous_text,
			new_text=new_text,
			description=description,
			actor_id=actor_id,
			now=now,
		)
		self.store.update(document)
		log.info("section %s/%s replaced, now at version %d", document.id, record.section_key, version.version_number)
		return ReconcileResult(document=document, changed=True, section=record, version=version)

	@staticmethod
	def _set_text(record: DocumentSection, text: str, now: datetime) -> None:
		record.text = text
		record.content_fingerprint = fingerprint(text)
		record.word_count = word_count(text)
		record.last_regenerated_at = now

	@staticmethod
	def _apply_metadata(document: Document, metadata: Optional[Mapping[str, Any]]) -> None:
		for name in _METADATA_FIELDS:
			if metadata and name in metadata:
				setattr(document, name, metadata[name])

	@staticmethod
	def _append_version(
		document: Document,
		*,
		section_key: Optional[str],
		previous_text: str,
		new_text: str,
		description: str,
		actor_id: str,
		now: datetime,
	) -> DocumentVersion:
		number = (document.current_version or 0) + 1
		version = DocumentVersion(
			version_number=number,
			section_key=section_key,
			previous_text=previous_text or "",
			new_text=new_text,
			change_description=description,
			actor_id=actor_id,
			created_at=now,
		)
		document.versions.append(version)
		document.current_version = number
		return version
