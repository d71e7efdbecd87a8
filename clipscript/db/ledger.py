"""Credit balance and generation counter mutations.

Balance changes are single conditional SQL updates, so two flows debiting
the same user cannot lose each other's update. A purchase and its PURCHASE
log entry commit in one transaction.
"""
import logging
from typing import Optional

from sqlalchemy import update

from clipscript.errors import InsufficientCredits, UserNotFound
from .activity import append
from .models import ActionKind, PurchaseMetadata, User
from .store import Store, Transaction, users_table


logger = logging.getLogger(__name__)


def check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"Credit amount must be a positive integer, got {amount!r}")


async def _require_user(txn: Transaction, user_id: str) -> User:
    user = await txn.get("users", user_id)
    if user is None:
        raise UserNotFound(user_id)
    return user


async def apply_debit(txn: Transaction, user_id: str, amount: int) -> User:
    """Subtract credits if the balance covers them."""
    result = await txn.execute(
        update(users_table)
        .where(users_table.c.id == user_id, users_table.c.credits >= amount)
        .values(credits=users_table.c.credits - amount)
    )
    if result.rowcount == 0:
        user = await _require_user(txn, user_id)
        raise InsufficientCredits(balance=user.credits, required=amount)
    return await _require_user(txn, user_id)


async def apply_credit(txn: Transaction, user_id: str, amount: int) -> User:
    """Add credits to a balance."""
    result = await txn.execute(
        update(users_table)
        .where(users_table.c.id == user_id)
        .values(credits=users_table.c.credits + amount)
    )
    if result.rowcount == 0:
        raise UserNotFound(user_id)
    return await _require_user(txn, user_id)


async def apply_generation(txn: Transaction, user_id: str) -> User:
    """Bump the generation counter by one."""
    result = await txn.execute(
        update(users_table)
        .where(users_table.c.id == user_id)
        .values(total_generations=users_table.c.total_generations + 1)
    )
    if result.rowcount == 0:
        raise UserNotFound(user_id)
    return await _require_user(txn, user_id)


async def debit_credits(store: Store, user_id: str, amount: int) -> User:
    """Deduct credits from a user's balance.

    Raises InsufficientCredits (balance untouched) when ``amount`` exceeds
    the balance. Returns the updated user; ``credits`` is the new balance.
    """
    check_amount(amount)
    user = await store.atomic(apply_debit, user_id, amount)
    logger.info("Debited %d credits from user %s. New balance: %d", amount, user_id, user.credits)
    return user


async def _purchase(
    txn: Transaction,
    user_id: str,
    amount: int,
    details: str,
    metadata: Optional[PurchaseMetadata],
) -> User:
    user = await apply_credit(txn, user_id, amount)
    await append(txn, user_id, ActionKind.PURCHASE, details, metadata)
    return user


async def add_credits(
    store: Store,
    user_id: str,
    amount: int,
    details: Optional[str] = None,
    metadata: Optional[PurchaseMetadata] = None,
) -> User:
    """Add purchased credits and log exactly one PURCHASE entry."""
    check_amount(amount)
    details = details or f"Purchased {amount} credits."
    user = await store.atomic(_purchase, user_id, amount, details, metadata)
    logger.info("Added %d credits to user %s. New balance: %d", amount, user_id, user.credits)
    return user


async def increment_generation_count(store: Store, user_id: str) -> User:
    """Increase a user's total generations by one."""
    return await store.atomic(apply_generation, user_id)
