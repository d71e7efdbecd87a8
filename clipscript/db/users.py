"""User identity operations: sign-up, sign-in and profile updates."""
import asyncio
import logging
from typing import Optional, Union

import bcrypt

from clipscript.errors import (
    AccountNotFound, EmailAlreadyRegistered, InvalidCredentials, ProviderMismatch, UserNotFound,
)
from .activity import append
from .models import (
    ActionKind, ExternalIdentity, LoginMetadata, User, UserCreate, UserUpdate,
    new_id, normalize_email, utcnow,
)
from .store import Store, Transaction


logger = logging.getLogger(__name__)

STARTING_CREDITS = 10


def default_avatar(email: str) -> str:
    """Generated avatar URL seeded by the email address."""
    return f"https://api.dicebear.com/7.x/avataaars/svg?seed={email}"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


async def get_by_id(store: Store, user_id: str) -> Optional[User]:
    """Get user by ID."""
    return await store.get("users", user_id)


async def find_by_email(store: Store, email: str) -> Optional[User]:
    """Get user by email (case and surrounding whitespace ignored)."""
    return await store.get_by_index("users", "email", normalize_email(email))


async def _create(txn: Transaction, user: User) -> User:
    if await txn.get_by_index("users", "email", user.email) is not None:
        raise EmailAlreadyRegistered()
    await txn.add("users", user)
    await append(
        txn, user.id, ActionKind.LOGIN, "Account created.",
        LoginMetadata(provider=user.auth_provider),
    )
    return user


async def create(
    store: Store,
    profile: Union[UserCreate, dict],
    starting_credits: int = STARTING_CREDITS,
) -> User:
    """Create a new user with the sign-up credit grant."""
    if not isinstance(profile, UserCreate):
        profile = UserCreate.model_validate(profile)

    password = None
    if profile.password:
        password = await asyncio.to_thread(hash_password, profile.password)

    now = utcnow()
    user = User(
        **profile.model_dump(exclude={"password", "avatar"}),
        id=new_id("usr"),
        avatar=profile.avatar or default_avatar(profile.email),
        created_at=now,
        last_login_at=now,
        total_generations=0,
        credits=starting_credits,
        password=password,
    )
    await store.atomic(_create, user)
    logger.info("Created %s account %s for %s", user.auth_provider, user.id, user.email)
    return user


async def _apply_update(txn: Transaction, user_id: str, changes: UserUpdate) -> User:
    user = await txn.get("users", user_id)
    if user is None:
        raise UserNotFound(user_id)
    updated = user.model_copy(update=changes.model_dump(exclude_unset=True))
    await txn.put("users", updated)
    return updated


async def _login(txn: Transaction, user_id: str, changes: UserUpdate, details: str, provider: str) -> User:
    user = await _apply_update(txn, user_id, changes)
    await append(txn, user_id, ActionKind.LOGIN, details, LoginMetadata(provider=provider))
    return user


async def update(store: Store, user_id: str, changes: Union[UserUpdate, dict]) -> User:
    """Merge profile fields into an existing user. Returns the updated user."""
    if not isinstance(changes, UserUpdate):
        changes = UserUpdate.model_validate(changes)
    return await store.atomic(_apply_update, user_id, changes)


async def authenticate(
    store: Store,
    email: str,
    password: str,
    browser_info: Optional[str] = None,
) -> User:
    """Sign in an email account and record the login."""
    user = await find_by_email(store, email)
    if user is None:
        raise AccountNotFound()
    if user.auth_provider != "email":
        raise ProviderMismatch()
    if not user.password or not await asyncio.to_thread(verify_password, password, user.password):
        raise InvalidCredentials()

    fields = {"last_login_at": utcnow()}
    if browser_info:
        fields["browser_info"] = browser_info
    return await store.atomic(_login, user.id, UserUpdate(**fields), "Signed in with email.", "email")


async def _sign_in_identity(txn: Transaction, identity: ExternalIdentity, starting_credits: int) -> User:
    user = await txn.get_by_index("users", "email", identity.email)
    if user is None:
        now = utcnow()
        user = User(
            id=new_id("usr"),
            email=identity.email,
            name=identity.name or "ClipScript Creator",
            avatar=identity.avatar or default_avatar(identity.email),
            profession="Story Creator",
            country="Global",
            created_at=now,
            last_login_at=now,
            total_generations=0,
            credits=starting_credits,
            auth_provider=identity.provider,
        )
        return await _create(txn, user)

    changes = UserUpdate(last_login_at=utcnow(), avatar=identity.avatar or user.avatar)
    return await _login(txn, user.id, changes, "Signed in with Google.", identity.provider)


async def sign_in_with_identity(
    store: Store,
    identity: ExternalIdentity,
    starting_credits: int = STARTING_CREDITS,
) -> User:
    """Turn a verified provider identity into a local user.

    Creates the account on first sign-in, otherwise refreshes the login
    time and avatar.
    """
    return await store.atomic(_sign_in_identity, identity, starting_credits)
