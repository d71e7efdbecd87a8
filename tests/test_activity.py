"""
Test the activity recorder
"""
import pydantic
import pytest
from datetime import datetime, timezone

from clipscript.db import activity
from clipscript.db.models import (
    ActionKind, ActivityLog, GenerateMetadata, LoginMetadata, PurchaseMetadata,
)
from conftest import create_google_user, run


def test_entries_read_back_newest_first(store):
    async def scenario():
        user = await create_google_user(store)
        await activity.record(store, user.id, ActionKind.TTS, "Spoke.")
        await activity.record(store, user.id, ActionKind.LOGOUT, "Signed out.")
        return await activity.list_activities(store, user.id)

    entries = run(scenario())
    assert [e.action for e in entries] == [ActionKind.LOGOUT, ActionKind.TTS, ActionKind.LOGIN]
    timestamps = [e.timestamp for e in entries]
    assert timestamps == sorted(timestamps, reverse=True)


def test_filter_by_action(store):
    async def scenario():
        user = await create_google_user(store)
        await activity.record(
            store, user.id, ActionKind.PURCHASE, "Paid.",
            PurchaseMetadata(external_ref="ch_1", price=9.99),
        )
        await activity.record(store, user.id, ActionKind.LOGOUT, "Signed out.")
        return await activity.list_activities(
            store, user.id, actions=[ActionKind.PURCHASE, ActionKind.GENERATE],
        )

    entries = run(scenario())
    assert [e.action for e in entries] == [ActionKind.PURCHASE]


def test_record_failure_does_not_propagate(store):
    entry = run(activity.record(store, "usr_missing", ActionKind.LOGIN, "Ghost login."))
    assert entry is None


def test_metadata_round_trips_as_tagged_variant(store):
    async def scenario():
        user = await create_google_user(store)
        return await activity.list_activities(store, user.id)

    (entry,) = run(scenario())
    assert isinstance(entry.metadata, LoginMetadata)
    assert entry.metadata.kind == "login"


def test_metadata_must_match_action():
    with pytest.raises(pydantic.ValidationError):
        ActivityLog(
            id="act_1",
            user_id="usr_1",
            action=ActionKind.PURCHASE,
            details="Mismatch",
            timestamp=datetime.now(timezone.utc),
            metadata=GenerateMetadata(record_id="str_1"),
        )


def test_entries_are_immutable():
    entry = ActivityLog(
        id="act_1",
        user_id="usr_1",
        action=ActionKind.LOGOUT,
        details="Signed out.",
        timestamp=datetime.now(timezone.utc),
    )
    with pytest.raises(pydantic.ValidationError):
        entry.details = "Changed"
