import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lessonforge import models  # noqa: F401  registers the tables
from lessonforge.db import Base, get_db
from lessonforge.gemini_client import get_ai_client
from lessonforge.main import app
from lessonforge.models import AuthUser
from lessonforge.reconciler import SectionReconciler
from lessonforge.routers.auth import hash_password
from lessonforge.store import DocumentStore


LESSON_TEXT = """Here is your lesson plan.

LEARNING OBJECTIVES
Students will describe photosynthesis.

WARM-UP ACTIVITY (5-7 minutes)
Show a wilting plant.

INTRODUCTION (10-12 minutes)
Why do plants need light?

MAIN ACTIVITIES (20-25 minutes)
Leaf disc experiment.
"""

QUIZ_TEXT = """Q1. What do plants need for photosynthesis?
A) Sunlight
B) Sand
C) Salt
D) Smoke
Correct: A
Explanation: Light drives the reaction.

Q2. Which gas do plants release?
A) Nitrogen
B) Oxygen
C) Helium
D) Argon
Correct: B
Explanation: Oxygen is a by-product.
"""


class FakeAIClient:
	model = "fake-gemini"

	def __init__(self):
		self.responses = []
		self.prompts = []
		self.calls = []

	def queue(self, *responses):
		self.responses.extend(responses)

	async def generate(self, prompt, **kwargs):
		self.prompts.append(prompt)
		self.calls.append(kwargs)
		response = self.responses.pop(0)
		if isinstance(response, Exception):
			raise response
		return response


@pytest.fixture
def engine():
	engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
	Base.metadata.create_all(engine)
	yield engine
	engine.dispose()


@pytest.fixture
def session_factory(engine):
	return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
	session = session_factory()
	yield session
	session.close()


@pytest.fixture
def reconciler(db):
	return SectionReconciler(DocumentStore(db))


@pytest.fixture
def ai():
	return FakeAIClient()


@pytest.fixture
def client(session_factory, ai):
	def _get_db():
		session = session_factory()
		try:
			yield session
		finally:
			session.close()

	app.dependency_overrides[get_db] = _get_db
	app.dependency_overrides[get_ai_client] = lambda: ai
	yield TestClient(app)
	app.dependency_overrides.clear()


@pytest.fixture
def login(client, session_factory):
	"""Register (or insert, for admins) a user and return bearer headers."""

	def _login(username, role="teacher", password="s3cret-pass"):
		if role == "admin":
			session = session_factory()
			session.add(AuthUser(username=username, password_hash=hash_password(password), role="admin"))
			session.commit()
			session.close()
		else:
			r = client.post("/auth/register", json={"username": username, "password": password, "role": role})
			assert r.status_code == 201, r.text
		r = client.post("/auth/token", data={"username": username, "password": password})
		assert r.status_code == 200, r.text
		return {"Authorization": f"Bearer {r.json()['access_token']}"}

	return _login
