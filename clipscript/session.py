"""Session persistence for ClipScript.

Keeps the signed-in user, theme and the last generated draft in a JSON
file in the user's config directory, so identity can be restored at
startup. The store stays the source of truth; this is only a cache.
"""
import json
import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from clipscript.config import get_settings
from clipscript.db.models import GeneratedContent, User


logger = logging.getLogger(__name__)


def get_session_path() -> Path:
    """Get the path to the session file."""
    return get_settings().resolved_session_path()


@dataclass
class SessionConfig:
    """Session state that persists across restarts."""

    # Serialized current user (password hash never included)
    user: Optional[dict] = None

    # Generator draft autosave
    draft: Optional[dict] = None

    # UI settings
    theme: str = "dark"

    path: Optional[Path] = field(default=None, repr=False, compare=False)

    @property
    def is_logged_in(self) -> bool:
        return self.user is not None

    @property
    def current_user(self) -> Optional[User]:
        """The cached user, or None if absent or unreadable."""
        if self.user is None:
            return None
        try:
            return User.model_validate(self.user)
        except ValidationError as e:
            logger.warning("Discarding unreadable cached session: %s", e)
            return None

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "SessionConfig":
        """Load session from file, or return defaults."""
        session_path = Path(path) if path else get_session_path()

        if session_path.exists():
            try:
                with open(session_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and k != "path"}
                return cls(**fields, path=session_path)
            except (json.JSONDecodeError, UnicodeDecodeError, OSError, TypeError, AttributeError) as e:
                logger.warning("Session load error: %s, using defaults", e)

        return cls(path=session_path)

    def save(self):
        """Save session to file."""
        session_path = self.path or get_session_path()
        data = asdict(self)
        data.pop("path")

        try:
            session_path.parent.mkdir(parents=True, exist_ok=True)
            with open(session_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error("Session save error: %s", e)

    def update(self, **kwargs):
        """Update specific fields and save."""
        for key, value in kwargs.items():
            if hasattr(self, key) and key != "path":
                setattr(self, key, value)
        self.save()

    def set_login(self, user: User):
        """Cache the signed-in user (also used to refresh it)."""
        self.user = user.public_dict()
        self.save()

    def clear_login(self):
        """Forget the signed-in user and their draft (logout)."""
        self.user = None
        self.draft = None
        self.save()

    def save_draft(self, prompt: str, output: GeneratedContent, settings: Optional[dict] = None):
        """Autosave the latest generator output."""
        self.draft = {
            "prompt": prompt,
            "output": output.model_dump(mode="json"),
            "settings": settings or {},
            "last_saved": datetime.now(timezone.utc).isoformat(),
        }
        self.save()
