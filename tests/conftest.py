"""Shared fixtures: a scriptable gateway, a fake LLM, an in-memory database."""
from __future__ import annotations

import asyncio
import itertools
import json
from types import SimpleNamespace
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import colorbook.models  # noqa: F401
from colorbook.config import JOB_TYPES, PollPolicy, Settings
from colorbook.database import Base, get_db
from colorbook.jobs.models import TaskStatus
from colorbook.main import create_app
from colorbook.services.ai_generator import TextGenerator

FAST_POLICY = PollPolicy(initial_delay=0, interval=0, max_attempts=5, retry_budget=2)


async def no_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


async def settle(predicate, rounds: int = 500) -> None:
    """Let the loop run until ``predicate()`` holds."""
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


class FakeGateway:
    """Gateway whose provider tasks follow a script.

    Each script entry is a TaskStatus, an exception to raise, or an async
    callable returning a TaskStatus. Once a script runs out the task stays
    in progress forever.
    """

    def __init__(self, default_script: list | None = None):
        self.default_script = list(default_script or [])
        self.scripts: dict[str, list] = {}
        self.created: list[tuple[str, dict]] = []
        self.queries: list[str] = []
        self.released: list[str] = []
        self._ids = itertools.count(1)

    def validate(self, job_type: str, params: dict[str, Any]) -> None:
        pass

    async def create_job(self, job_type: str, params: dict[str, Any]) -> str:
        error = params.get("create_error")
        if error is not None:
            raise error
        task_id = f"task-{next(self._ids)}"
        self.created.append((job_type, params))
        self.scripts[task_id] = list(params.get("script") or self.default_script)
        return task_id

    async def query_job(self, task_id: str, job_type: str, provider: str | None = None) -> TaskStatus:
        self.queries.append(task_id)
        script = self.scripts.get(task_id) or []
        if not script:
            return TaskStatus(state="in_progress")
        step = script.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return await step()
        return step

    def release(self, task_id: str | None, job_type: str) -> None:
        if task_id:
            self.released.append(task_id)
            self.scripts.pop(task_id, None)


class FakeCompletions:
    def __init__(self, replies: list):
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


def fake_openai(*replies) -> SimpleNamespace:
    """Stand-in for ``AsyncOpenAI`` answering chat calls with ``replies`` in order."""
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(list(replies))))


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def fast_policies():
    return {jt: FAST_POLICY for jt in JOB_TYPES}


@pytest.fixture
def settings(fast_policies):
    return Settings(
        database_url="sqlite://",
        kieai_auth_token="test-token",
        llm_api_key="test-key",
        job_grace_seconds=60,
        batch_throttle_seconds=0,
        poll_policies=fast_policies,
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        json_serializer=lambda obj: json.dumps(obj, ensure_ascii=False),
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def app_factory(settings, gateway, session_factory):
    """Build the FastAPI app around the fake gateway and the in-memory database."""

    def build(*llm_replies, storage=None):
        app = create_app(
            settings,
            gateway=gateway,
            text=TextGenerator(fake_openai(*llm_replies), "test-model"),
            storage=storage,
            create_tables=False,
        )

        def override_get_db():
            session = session_factory()
            try:
                yield session
            finally:
                session.close()

        app.dependency_overrides[get_db] = override_get_db
        return app

    return build
