"""
Test the content library
"""
import pytest

from clipscript.db import activity, ledger, library, users
from clipscript.db.models import ActionKind, GeneratedContent
from clipscript.errors import InsufficientCredits, UserNotFound
from conftest import create_google_user, run


def story(title="X"):
    return GeneratedContent(
        title=title,
        content=f"The tale of {title}.",
        viral_titles=[f"{title}!", f"Why {title}?"],
        hashtags=["#story", "#viral"],
    )


def test_save_counts_generation_and_logs_once(store):
    async def scenario():
        user = await create_google_user(store)
        await library.save(store, user.id, story("First"))
        record = await library.save(store, user.id, story("Second"))
        return (
            record,
            await users.get_by_id(store, user.id),
            await activity.list_activities(store, user.id, actions=[ActionKind.GENERATE]),
            await library.list_by_user(store, user.id),
        )

    record, user, generated, records = run(scenario())
    assert user.total_generations == 2
    assert len(generated) == 2
    assert generated[0].metadata.record_id == record.id
    assert generated[0].details == 'Generated "Second"'
    assert records[0].id == record.id
    assert [r.title for r in records] == ["Second", "First"]


def test_saved_record_keeps_lists(store):
    async def scenario():
        user = await create_google_user(store)
        await library.save(store, user.id, story())
        return await library.list_by_user(store, user.id)

    (record,) = run(scenario())
    assert record.id.startswith("str_")
    assert record.viral_titles == ["X!", "Why X?"]
    assert record.hashtags == ["#story", "#viral"]
    assert record.timestamp.tzinfo is not None


def test_save_for_unknown_user_writes_nothing(store):
    async def scenario():
        with pytest.raises(UserNotFound):
            await library.save(store, "usr_missing", story())
        return (
            await library.list_by_user(store, "usr_missing"),
            await activity.list_activities(store, "usr_missing"),
        )

    records, logs = run(scenario())
    assert records == []
    assert logs == []


def test_list_is_empty_for_new_user(store):
    async def scenario():
        user = await create_google_user(store)
        return await library.list_by_user(store, user.id)

    assert run(scenario()) == []


def test_list_is_scoped_to_owner(store):
    async def scenario():
        alice = await create_google_user(store, email="alice@example.com")
        bob = await create_google_user(store, email="bob@example.com")
        await library.save(store, alice.id, story("Alice's"))
        return await library.list_by_user(store, bob.id)

    assert run(scenario()) == []


def test_debit_then_save_scenario(store):
    async def scenario():
        user = await create_google_user(store)
        await ledger.debit_credits(store, user.id, 1)
        await library.save(store, user.id, story("X"))
        return (
            await users.get_by_id(store, user.id),
            await activity.list_activities(store, user.id, actions=[ActionKind.GENERATE]),
            await library.list_by_user(store, user.id),
        )

    user, generated, records = run(scenario())
    assert user.credits == 9
    assert user.total_generations == 1
    assert len(generated) == 1
    assert len(records) == 1
    assert records[0].title == "X"


def test_paid_save_debits_with_the_record(store):
    async def scenario():
        user = await create_google_user(store)
        await library.save(store, user.id, story("Paid"), cost=3)
        return await users.get_by_id(store, user.id), await library.list_by_user(store, user.id)

    user, records = run(scenario())
    assert user.credits == 7
    assert user.total_generations == 1
    assert [r.title for r in records] == ["Paid"]


def test_paid_save_over_balance_writes_nothing(store):
    async def scenario():
        user = await create_google_user(store)
        with pytest.raises(InsufficientCredits):
            await library.save(store, user.id, story(), cost=11)
        return (
            await users.get_by_id(store, user.id),
            await library.list_by_user(store, user.id),
            await activity.list_activities(store, user.id, actions=[ActionKind.GENERATE]),
        )

    user, records, generated = run(scenario())
    assert user.credits == 10
    assert user.total_generations == 0
    assert records == []
    assert generated == []


def test_failed_save_leaves_balance_untouched(store, monkeypatch):
    async def broken_counter(txn, user_id):
        raise RuntimeError("counter unavailable")

    monkeypatch.setattr(library, "apply_generation", broken_counter)

    async def scenario():
        user = await create_google_user(store)
        with pytest.raises(RuntimeError):
            await library.save(store, user.id, story(), cost=1)
        return await users.get_by_id(store, user.id), await library.list_by_user(store, user.id)

    user, records = run(scenario())
    assert user.credits == 10
    assert records == []


def test_get_only_returns_owned_records(store):
    async def scenario():
        alice = await create_google_user(store, email="alice@example.com")
        bob = await create_google_user(store, email="bob@example.com")
        record = await library.save(store, alice.id, story())
        return (
            await library.get(store, alice.id, record.id),
            await library.get(store, bob.id, record.id),
            record,
        )

    owned, foreign, record = run(scenario())
    assert owned.id == record.id
    assert foreign is None
