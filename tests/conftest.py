"""Shared fixtures for the ClipScript tests."""
import asyncio

import pytest

from clipscript.ai_client import ContentGenerator, TopicValidation, ViralMetadata
from clipscript.config import Settings
from clipscript.db import users
from clipscript.db.models import GeneratedContent, UserCreate
from clipscript.db.store import Store
from clipscript.session import SessionConfig


@pytest.fixture
def store(tmp_path):
    store = Store(tmp_path / "clipscript.db")
    yield store
    run(store.close())


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_path=tmp_path / "clipscript.db",
        session_path=tmp_path / "session.json",
    )


@pytest.fixture
def session(tmp_path):
    return SessionConfig(path=tmp_path / "session.json")


async def create_google_user(store, email="creator@example.com", name="Creator"):
    """Create a user without paying for a bcrypt hash."""
    return await users.create(
        store,
        UserCreate(email=email, name=name, auth_provider="google"),
    )


def run(coro):
    return asyncio.run(coro)


class FakeGenerator(ContentGenerator):
    """Scripted stand-in for the Gemini client."""

    def __init__(self, story=None, valid=True, suggestions=None, fail=False, pcm=None):
        self.story = story or GeneratedContent(
            title="X",
            content="Once upon a time.",
            viral_titles=["X: the story"],
            hashtags=["#story"],
        )
        self.valid = valid
        self.suggestions = suggestions or []
        self.fail = fail
        self.pcm = pcm if pcm is not None else b"\x00\x01" * 2400
        self.calls = []

    async def validate_topic(self, prompt):
        self.calls.append(("validate_topic", prompt))
        if self.valid:
            return TopicValidation(is_valid=True)
        return TopicValidation(is_valid=False, message="Try a real topic.", suggestions=self.suggestions)

    async def generate_story(self, prompt, settings, mode="new", context=None):
        self.calls.append(("generate_story", prompt, mode, context))
        if self.fail:
            raise RuntimeError("Generation failed.")
        return self.story

    async def generate_viral_metadata(self, script):
        self.calls.append(("generate_viral_metadata", script))
        return ViralMetadata(titles=self.story.viral_titles, hashtags=self.story.hashtags)

    async def generate_speech(self, text, voice="Kore"):
        self.calls.append(("generate_speech", text, voice))
        return self.pcm
