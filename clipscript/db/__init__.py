"""Database module."""
from .store import Store, Transaction, Collection, Lookup, COLLECTIONS, SCHEMA_VERSION
from .models import (
    ActionKind, ActivityLog, ContentRecord, ExternalIdentity, GeneratedContent,
    GenerateMetadata, LoginMetadata, ProfileMetadata, PurchaseMetadata, SpeechMetadata,
    User, UserCreate, UserUpdate, normalize_email,
)
from . import activity, ledger, library, users

__all__ = [
    "Store", "Transaction", "Collection", "Lookup", "COLLECTIONS", "SCHEMA_VERSION",
    "ActionKind", "ActivityLog", "ContentRecord", "ExternalIdentity", "GeneratedContent",
    "GenerateMetadata", "LoginMetadata", "ProfileMetadata", "PurchaseMetadata", "SpeechMetadata",
    "User", "UserCreate", "UserUpdate", "normalize_email",
    "activity", "ledger", "library", "users",
]
