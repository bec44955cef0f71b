from __future__ import annotations
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./lessonforge.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Columns added after the first release; SQLite cannot add them through create_all
_LATE_COLUMNS = {
	"auth_users": {
		"role": "ALTER TABLE auth_users ADD COLUMN role VARCHAR(16) DEFAULT 'teacher' NOT NULL",
		"email": "ALTER TABLE auth_users ADD COLUMN email VARCHAR(256)",
	},
	"document_sections": {
		"word_count": "ALTER TABLE document_sections ADD COLUMN word_count INTEGER DEFAULT 0 NOT NULL",
	},
	"documents": {
		"total_tokens": "ALTER TABLE documents ADD COLUMN total_tokens INTEGER DEFAULT 0 NOT NULL",
	},
}


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema(bind=None) -> list[str]:
	bind = bind or engine
	inspector = inspect(bind)
	tables = set(inspector.get_table_names())
	applied: list[str] = []
	with bind.begin() as conn:
		for table, columns in _LATE_COLUMNS.items():
			if table not in tables:
				continue
			existing = {c["name"] for c in inspector.get_columns(table)}
			for name, ddl in columns.items():
				if name not in existing:
					conn.exec_driver_sql(ddl)
					applied.append(f"{table}.{name}")
	return applied
