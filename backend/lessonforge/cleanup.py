from __future__ import annotations
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import AIUsage, AuthSession
from .settings import settings


def purge_stale_rows(db: Session, *, retention_days: Optional[int] = None, now: Optional[datetime] = None) -> int:
	"""Delete AI usage rows and idle auth sessions older than the retention window.

	Documents and their version history are never touched here.
	"""
	days = settings.usage_retention_days if retention_days is None else retention_days
	threshold = (now or datetime.utcnow()) - timedelta(days=days)
	removed = 0

	res = db.execute(delete(AIUsage).where(AIUsage.created_at < threshold))
	removed += res.rowcount or 0

	res = db.execute(delete(AuthSession).where(AuthSession.last_activity_at < threshold))
	removed += res.rowcount or 0

	db.commit()
	return removed
