"""ClipScript studio - the flows behind the UI, wired to one local store."""
import logging
from typing import Optional, Union

import httpx

from clipscript import billing
from clipscript.ai_client import (
    ContentGenerator, GenerationSettings, GenMode, ViralMetadata, create_generator,
    merge_continuation,
)
from clipscript.audio import pcm_duration, pcm_to_wav
from clipscript.auth.google import verify_google_token
from clipscript.config import Settings, configure_logging, get_settings
from clipscript.db import activity, library, users
from clipscript.db.models import (
    ActionKind, ActivityLog, ContentRecord, GeneratedContent, ProfileMetadata,
    SpeechMetadata, User, UserCreate, UserUpdate,
)
from clipscript.db.store import Store
from clipscript.errors import ContentNotFound, InsufficientCredits, NotSignedIn, TopicRejected
from clipscript.session import SessionConfig


logger = logging.getLogger(__name__)


class Studio:
    """Account, generation and purchase flows for the signed-in user.

    Every ledger and library call goes through the single ``store`` handle;
    the session cache is refreshed with the full user after each change.
    """

    def __init__(
        self,
        store: Store,
        generator: ContentGenerator,
        session: SessionConfig,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.generator = generator
        self.session = session
        self.settings = settings or get_settings()
        self.user: Optional[User] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Studio":
        """Build a studio from configuration (database, Gemini, session file)."""
        settings = settings or get_settings()
        configure_logging(settings)
        return cls(
            store=Store(settings.resolved_database_path()),
            generator=create_generator(
                "gemini", settings.gemini_api_key,
                model=settings.text_model, tts_model=settings.tts_model,
            ),
            session=SessionConfig.load(settings.resolved_session_path()),
            settings=settings,
        )

    async def close(self) -> None:
        await self.store.close()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def _require_user(self) -> User:
        if self.user is None:
            raise NotSignedIn()
        return self.user

    def _set_user(self, user: User) -> User:
        self.user = user
        self.session.set_login(user)
        return user

    # ============= Session =============

    async def restore_session(self) -> Optional[User]:
        """Rehydrate the signed-in user from the session cache.

        The cached copy is refreshed from the store; a user that no longer
        exists clears the session.
        """
        cached = self.session.current_user
        if cached is None:
            return None

        user = await users.get_by_id(self.store, cached.id)
        if user is None:
            logger.warning("Cached session user %s no longer exists", cached.id)
            self.session.clear_login()
            self.user = None
            return None

        logger.info("Restored session for %s", user.email)
        return self._set_user(user)

    async def sign_up(self, profile: Union[UserCreate, dict]) -> User:
        user = await users.create(self.store, profile, starting_credits=self.settings.starting_credits)
        return self._set_user(user)

    async def login(self, email: str, password: str, browser_info: Optional[str] = None) -> User:
        user = await users.authenticate(self.store, email, password, browser_info=browser_info)
        return self._set_user(user)

    async def login_with_google(
        self,
        access_token: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> User:
        """Sign in with a Google access token, creating the account if new."""
        identity = await verify_google_token(access_token, client)
        user = await users.sign_in_with_identity(
            self.store, identity, starting_credits=self.settings.starting_credits,
        )
        return self._set_user(user)

    async def logout(self) -> None:
        if self.user is not None:
            await activity.record(self.store, self.user.id, ActionKind.LOGOUT, "Signed out.")
        self.user = None
        self.session.clear_login()

    async def update_profile(self, changes: Union[UserUpdate, dict]) -> User:
        user = self._require_user()
        if not isinstance(changes, UserUpdate):
            changes = UserUpdate.model_validate(changes)
        updated = await users.update(self.store, user.id, changes)
        fields = sorted(changes.model_dump(exclude_unset=True))
        await activity.record(
            self.store, user.id, ActionKind.UPDATE_PROFILE,
            "Updated profile.", ProfileMetadata(fields=fields),
        )
        return self._set_user(updated)

    # ============= Generation =============

    async def generate(
        self,
        prompt: str,
        settings: Optional[GenerationSettings] = None,
        mode: GenMode = "new",
        previous: Optional[GeneratedContent] = None,
    ) -> ContentRecord:
        """Generate a script, pay for it and save it to the library.

        The debit and the saved record commit together. Nothing is written
        if validation, generation or the save fails.
        """
        user = self._require_user()
        settings = settings or GenerationSettings()
        cost = self.settings.generation_cost

        if mode != "continue" and not prompt.strip():
            raise ValueError("Prompt must not be empty")
        if mode != "new" and previous is None:
            raise ValueError(f"{mode} mode needs the previous content")

        fresh = await users.get_by_id(self.store, user.id)
        if fresh is not None and fresh.credits < cost:
            raise InsufficientCredits(balance=fresh.credits, required=cost)

        if mode == "new":
            validation = await self.generator.validate_topic(prompt)
            if not validation.is_valid:
                raise TopicRejected(validation.message, validation.suggestions)

        context = previous.content if previous is not None else None
        result = await self.generator.generate_story(prompt, settings, mode, context)
        if mode == "continue":
            result = merge_continuation(previous, result)

        record = await library.save(self.store, user.id, result, cost=cost)
        self.session.save_draft(prompt, record, settings.model_dump())

        refreshed = await users.get_by_id(self.store, user.id)
        if refreshed is not None:
            self._set_user(refreshed)
        return record

    async def synthesize_speech(self, text: str, voice: Optional[str] = None) -> bytes:
        """Speak ``text`` and return it as WAV bytes."""
        user = self._require_user()
        if not text.strip():
            raise ValueError("Text must not be empty")
        voice = voice or self.settings.default_voice
        sample_rate = self.settings.tts_sample_rate

        pcm = await self.generator.generate_speech(text, voice)
        wav = pcm_to_wav(pcm, sample_rate)

        await activity.record(
            self.store, user.id, ActionKind.TTS,
            f"Generated speech with {voice}.",
            SpeechMetadata(
                voice=voice,
                characters=len(text),
                duration_seconds=round(pcm_duration(pcm, sample_rate), 3),
            ),
        )
        return wav

    async def suggest_viral_metadata(self, record_id: str) -> ViralMetadata:
        """Fresh title and hashtag ideas for a script in the library."""
        user = self._require_user()
        record = await library.get(self.store, user.id, record_id)
        if record is None:
            raise ContentNotFound(record_id)
        return await self.generator.generate_viral_metadata(record.content)

    # ============= Billing =============

    async def purchase(self, package_id: str, payment_ref: Optional[str] = None) -> User:
        user = self._require_user()
        updated = await billing.purchase(self.store, user.id, package_id, payment_ref)
        return self._set_user(updated)

    # ============= History =============

    async def list_library(self) -> list[ContentRecord]:
        user = self._require_user()
        return await library.list_by_user(self.store, user.id)

    async def billing_history(self) -> list[ActivityLog]:
        """Purchases and generations, newest first."""
        user = self._require_user()
        return await activity.list_activities(
            self.store, user.id, actions=[ActionKind.PURCHASE, ActionKind.GENERATE],
        )

    async def activity_history(self) -> list[ActivityLog]:
        user = self._require_user()
        return await activity.list_activities(self.store, user.id)
