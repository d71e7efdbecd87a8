"""Database models (Pydantic schemas for the local store)."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


AuthProvider = Literal["google", "email"]


def new_id(prefix: str) -> str:
    """Generate a prefixed record id, e.g. ``usr_3f9c...``."""
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address."""
    return email.strip().lower()


class ActionKind(str, Enum):
    """Kinds of account events kept in the activity log."""
    LOGIN = "LOGIN"
    GENERATE = "GENERATE"
    TTS = "TTS"
    UPDATE_PROFILE = "UPDATE_PROFILE"
    LOGOUT = "LOGOUT"
    PURCHASE = "PURCHASE"


# ============= Users =============

class User(BaseModel):
    """User model."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: EmailStr
    name: str
    avatar: Optional[str] = None
    profession: Optional[str] = None
    country: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    referral: Optional[str] = None
    device_info: Optional[str] = None
    browser_info: Optional[str] = None
    created_at: datetime
    last_login_at: datetime
    total_generations: int = Field(default=0, ge=0)
    credits: int = Field(default=0, ge=0)
    auth_provider: AuthProvider
    password: Optional[str] = None  # bcrypt hash, email accounts only

    @model_validator(mode="after")
    def _google_has_no_password(self):
        if self.auth_provider == "google" and self.password:
            raise ValueError("Google accounts cannot carry a password")
        return self

    def public_dict(self) -> dict:
        """JSON-safe dict without the password hash."""
        return self.model_dump(mode="json", exclude={"password"})


class UserCreate(BaseModel):
    """User creation payload."""
    email: EmailStr
    name: str
    avatar: Optional[str] = None
    profession: Optional[str] = None
    country: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    referral: Optional[str] = None
    device_info: Optional[str] = None
    browser_info: Optional[str] = None
    auth_provider: AuthProvider = "email"
    password: Optional[str] = None  # plain text, hashed before storage

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        if isinstance(value, str):
            return normalize_email(value)
        return value

    @model_validator(mode="after")
    def _password_matches_provider(self):
        if self.auth_provider == "email" and not self.password:
            raise ValueError("A password is required for email sign-up")
        if self.auth_provider != "email" and self.password:
            raise ValueError("Only email accounts can have a password")
        return self


class UserUpdate(BaseModel):
    """Profile fields a user (or a login flow) may change.

    Credits and the generation counter change only through the ledger.
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    avatar: Optional[str] = None
    profession: Optional[str] = None
    country: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    referral: Optional[str] = None
    device_info: Optional[str] = None
    browser_info: Optional[str] = None
    last_login_at: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def _name_present(cls, value):
        if value is None or not value.strip():
            raise ValueError("Name must not be empty")
        return value

    @field_validator("last_login_at")
    @classmethod
    def _login_time_present(cls, value):
        if value is None:
            raise ValueError("Last login time must not be empty")
        return value


# ============= Generated content =============

class GeneratedContent(BaseModel):
    """A generation result as returned by the text collaborator."""
    title: str
    content: str
    viral_titles: list[str] = Field(default_factory=list)
    hashtags: list[str] = Field(default_factory=list)


class ContentRecord(GeneratedContent):
    """A generated artifact saved in a user's library."""
    id: str
    user_id: str
    timestamp: datetime


# ============= Activity log =============

class LoginMetadata(BaseModel):
    kind: Literal["login"] = "login"
    provider: AuthProvider


class GenerateMetadata(BaseModel):
    kind: Literal["generate"] = "generate"
    record_id: str


class SpeechMetadata(BaseModel):
    kind: Literal["tts"] = "tts"
    voice: str
    characters: int
    duration_seconds: float


class ProfileMetadata(BaseModel):
    kind: Literal["profile"] = "profile"
    fields: list[str]


class PurchaseMetadata(BaseModel):
    kind: Literal["purchase"] = "purchase"
    external_ref: str
    price: float
    package_id: Optional[str] = None
    credits: Optional[int] = None


ActivityMetadata = Annotated[
    Union[LoginMetadata, GenerateMetadata, SpeechMetadata, ProfileMetadata, PurchaseMetadata],
    Field(discriminator="kind"),
]

# Which metadata variant each action may carry (LOGOUT carries none)
METADATA_FOR_ACTION = {
    ActionKind.LOGIN: LoginMetadata,
    ActionKind.GENERATE: GenerateMetadata,
    ActionKind.TTS: SpeechMetadata,
    ActionKind.UPDATE_PROFILE: ProfileMetadata,
    ActionKind.PURCHASE: PurchaseMetadata,
}


class ActivityLog(BaseModel):
    """Immutable audit record of a user-affecting event."""
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    action: ActionKind
    details: str
    timestamp: datetime
    metadata: Optional[ActivityMetadata] = None

    @model_validator(mode="after")
    def _metadata_matches_action(self):
        if self.metadata is None:
            return self
        expected = METADATA_FOR_ACTION.get(self.action)
        if expected is None or not isinstance(self.metadata, expected):
            raise ValueError(
                f"{type(self.metadata).__name__} is not valid for {self.action.value} entries"
            )
        return self


# ============= External identity =============

class ExternalIdentity(BaseModel):
    """A verified identity handed over by a sign-in provider."""
    email: EmailStr
    name: Optional[str] = None
    avatar: Optional[str] = None
    provider: AuthProvider = "google"

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        if isinstance(value, str):
            return normalize_email(value)
        return value
