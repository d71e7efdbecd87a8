"""
Test the session cache
"""
import json

from clipscript.db.models import GeneratedContent, User
from clipscript.db.models import utcnow
from clipscript.session import SessionConfig


def make_user(**overrides):
    now = utcnow()
    fields = dict(
        id="usr_1",
        email="writer@example.com",
        name="Writer",
        created_at=now,
        last_login_at=now,
        total_generations=3,
        credits=7,
        auth_provider="email",
        password="$2b$12$hashhashhash",
    )
    fields.update(overrides)
    return User(**fields)


def test_login_round_trip_without_password(tmp_path):
    path = tmp_path / "session.json"
    session = SessionConfig(path=path)
    session.set_login(make_user())

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert "password" not in stored["user"]

    loaded = SessionConfig.load(path)
    assert loaded.is_logged_in
    user = loaded.current_user
    assert user.id == "usr_1"
    assert user.credits == 7
    assert user.password is None


def test_clear_login_forgets_user_and_draft(tmp_path):
    path = tmp_path / "session.json"
    session = SessionConfig(path=path)
    session.set_login(make_user())
    session.save_draft("a lighthouse", GeneratedContent(title="T", content="C"), {"mood": "Sad"})

    session.clear_login()

    loaded = SessionConfig.load(path)
    assert not loaded.is_logged_in
    assert loaded.current_user is None
    assert loaded.draft is None


def test_draft_is_saved(tmp_path):
    path = tmp_path / "session.json"
    SessionConfig(path=path).save_draft(
        "a lighthouse", GeneratedContent(title="T", content="C"), {"mood": "Sad"},
    )

    draft = SessionConfig.load(path).draft
    assert draft["prompt"] == "a lighthouse"
    assert draft["output"]["title"] == "T"
    assert draft["settings"] == {"mood": "Sad"}


def test_corrupt_file_loads_defaults(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")

    session = SessionConfig.load(path)
    assert session.user is None
    assert session.theme == "dark"
    assert session.path == path


def test_unreadable_cached_user_is_ignored(tmp_path):
    path = tmp_path / "session.json"
    path.write_text(json.dumps({"user": {"id": "usr_1"}, "theme": "light"}), encoding="utf-8")

    session = SessionConfig.load(path)
    assert session.theme == "light"
    assert session.current_user is None


def test_update_persists(tmp_path):
    path = tmp_path / "session.json"
    SessionConfig(path=path).update(theme="light", unknown="ignored")
    assert SessionConfig.load(path).theme == "light"


def test_garbled_file_loads_defaults(tmp_path):
    path = tmp_path / "session.json"
    path.write_bytes(b'{"theme": "\xff\xfe"}')

    session = SessionConfig.load(path)
    assert session.theme == "dark"
    assert session.user is None


def test_unreadable_path_loads_defaults(tmp_path):
    path = tmp_path / "session.json"
    path.mkdir()

    session = SessionConfig.load(path)
    assert session.user is None
