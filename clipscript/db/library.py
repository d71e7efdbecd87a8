"""Per-user library of generated content."""
import logging
from typing import Optional

from .activity import append
from .ledger import check_amount, apply_debit, apply_generation
from .models import ActionKind, ContentRecord, GeneratedContent, GenerateMetadata, new_id, utcnow
from .store import Store, Transaction


logger = logging.getLogger(__name__)


async def _save(txn: Transaction, record: ContentRecord, cost: int) -> ContentRecord:
    if cost:
        await apply_debit(txn, record.user_id, cost)
    await txn.add("content", record)
    await apply_generation(txn, record.user_id)
    await append(
        txn, record.user_id, ActionKind.GENERATE,
        f'Generated "{record.title}"',
        GenerateMetadata(record_id=record.id),
    )
    return record


async def save(store: Store, user_id: str, content: GeneratedContent, cost: int = 0) -> ContentRecord:
    """Save a generated artifact to the user's library.

    Stores the record, counts the generation and logs a GENERATE entry in
    one transaction. With a ``cost`` the credits are debited in that same
    transaction, so a user is never charged for a script that was not saved.
    Raises UserNotFound (nothing written) for an unknown user and
    InsufficientCredits when the balance no longer covers ``cost``.
    """
    if cost:
        check_amount(cost)
    record = ContentRecord(
        title=content.title,
        content=content.content,
        viral_titles=list(content.viral_titles),
        hashtags=list(content.hashtags),
        id=new_id("str"),
        user_id=user_id,
        timestamp=utcnow(),
    )
    await store.atomic(_save, record, cost)
    logger.info("Saved %s to library of user %s", record.id, user_id)
    return record


async def get(store: Store, user_id: str, record_id: str) -> Optional[ContentRecord]:
    """Get one of the user's saved records, or None."""
    record = await store.get("content", record_id)
    if record is None or record.user_id != user_id:
        return None
    return record


async def _list(txn: Transaction, user_id: str) -> list[ContentRecord]:
    records = await txn.get_by_index("content", "user_id", user_id)
    records.reverse()
    records.sort(key=lambda r: r.timestamp, reverse=True)
    return records


async def list_by_user(store: Store, user_id: str) -> list[ContentRecord]:
    """Get a user's saved content, newest first."""
    return await store.atomic(_list, user_id)
