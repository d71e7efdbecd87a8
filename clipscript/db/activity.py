"""Append-only activity log of account events."""
import logging
from typing import Iterable, Optional

from clipscript.errors import StorageError, UserNotFound
from .models import ActionKind, ActivityLog, new_id, utcnow
from .store import Store, Transaction


logger = logging.getLogger(__name__)


async def append(
    txn: Transaction,
    user_id: str,
    action: ActionKind,
    details: str,
    metadata=None,
) -> ActivityLog:
    """Add an activity entry inside an open transaction."""
    entry = ActivityLog(
        id=new_id("act"),
        user_id=user_id,
        action=ActionKind(action),
        details=details,
        timestamp=utcnow(),
        metadata=metadata,
    )
    await txn.add("activity", entry)
    return entry


async def record(
    store: Store,
    user_id: str,
    action: ActionKind,
    details: str,
    metadata=None,
) -> Optional[ActivityLog]:
    """Record an activity entry on its own.

    A failed write is logged and never propagates, so it cannot undo the
    operation that triggered it. Returns the entry, or None if it was lost.
    """
    try:
        entry = await store.atomic(append, user_id, action, details, metadata)
    except (StorageError, UserNotFound) as e:
        logger.warning("Dropped %s activity for user %s: %s", ActionKind(action).value, user_id, e)
        return None
    logger.debug("Recorded %s activity for user %s", entry.action.value, user_id)
    return entry


async def _list(txn: Transaction, user_id: str, actions: Optional[frozenset]) -> list[ActivityLog]:
    entries = await txn.get_by_index("activity", "user_id", user_id)
    if actions is not None:
        entries = [e for e in entries if e.action in actions]
    # Newest first; equal timestamps keep the later insert first
    entries.reverse()
    entries.sort(key=lambda e: e.timestamp, reverse=True)
    return entries


async def list_activities(
    store: Store,
    user_id: str,
    actions: Optional[Iterable[ActionKind]] = None,
) -> list[ActivityLog]:
    """Get a user's activity entries, newest first, optionally filtered by kind."""
    kinds = frozenset(ActionKind(a) for a in actions) if actions is not None else None
    return await store.atomic(_list, user_id, kinds)
