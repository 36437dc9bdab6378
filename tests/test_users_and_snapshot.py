import json

import pytest
from sqlalchemy.pool import NullPool

from forumize.core.database import build_engine, build_session_factory, init_db
from forumize.core.errors import NotFoundError, ValidationError
from forumize.models.models import SubscriptionTier
from forumize.services.forums.forum_service import ForumService
from forumize.services.forums.snapshot import export_snapshot, import_legacy_file, import_snapshot
from forumize.services.users.user_service import UserService

users = UserService()
PROFILE = {"googleId": "g-1", "email": "ann@example.com", "name": "Ann", "picture": None}


async def test_find_or_create_is_idempotent(session):
    first = await users.find_or_create(PROFILE, session)
    second = await users.find_or_create({**PROFILE, "name": "Changed"}, session)

    assert first.id == second.id
    assert first.subscription_tier == SubscriptionTier.FREE
    assert users.to_schema(first).subscriptions == []


async def test_find_by_id(session):
    user = await users.find_or_create(PROFILE, session)

    assert (await users.find_by_id(user.id, session)).google_id == "g-1"
    assert await users.find_by_id("missing", session) is None


async def test_find_or_create_requires_google_id(session):
    with pytest.raises(ValidationError):
        await users.find_or_create({"email": "x@example.com"}, session)


async def test_update_subscription_records_history(session):
    user = await users.find_or_create(PROFILE, session)

    await users.update_subscription(user.id, "pro", session)
    user = await users.update_subscription(user.id, "premium", session)

    schema = users.to_schema(user)
    assert schema.subscription_tier == "premium"
    assert [s.tier for s in schema.subscriptions] == ["pro", "premium"]

    with pytest.raises(ValidationError):
        await users.update_subscription(user.id, "gold", session)
    with pytest.raises(NotFoundError):
        await users.update_subscription("missing", "pro", session)


async def test_export_import_round_trip(session, tmp_path):
    forum = await ForumService().create(session, "vid", {"threads": [{"id": "a"}]}, user_id="u1")
    user = await users.find_or_create(PROFILE, session)
    await users.update_subscription(user.id, "pro", session)
    await session.commit()

    document = await export_snapshot(session)

    assert document["forums"][0]["id"] == forum.id
    assert document["forums"][0]["forumData"] == {"threads": [{"id": "a"}]}
    assert document["forums"][0]["createdAt"].endswith("+00:00")
    assert document["users"][0]["googleId"] == "g-1"
    assert document["users"][0]["subscriptionTier"] == "pro"
    assert document["subscriptions"][0]["userId"] == user.id

    other = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'copy.db'}", poolclass=NullPool)
    await init_db(bind=other)
    async with build_session_factory(other)() as copy_session:
        counts = await import_snapshot(json.loads(json.dumps(document)), copy_session)
        await copy_session.commit()
        restored = await export_snapshot(copy_session)
    await other.dispose()

    assert counts == {"forums": 1, "users": 1, "subscriptions": 1}
    assert restored["forums"][0]["forumData"] == document["forums"][0]["forumData"]
    assert restored["users"][0]["id"] == user.id


async def test_import_legacy_file_only_into_empty_store(session, tmp_path):
    legacy = {
        "forums": [{
            "id": "f-1", "videoId": "7212345678901234567", "forumData": {"threads": []},
            "createdAt": "2024-01-02T03:04:05.000Z", "shareToken": "abcdef123456", "timesAccessed": 4,
        }, {"videoId": "no-id"}],
        "users": [{"id": "u-1", "googleId": "g-9", "subscriptionTier": "premium"}],
        "subscriptions": [{"userId": "u-1", "tier": "premium"}, {"userId": "ghost", "tier": "pro"}],
    }
    path = tmp_path / "db.json"
    path.write_text(json.dumps(legacy), encoding="utf-8")

    counts = await import_legacy_file(str(path), session)

    assert counts == {"forums": 1, "users": 1, "subscriptions": 1}
    forum = await ForumService().find_by_share_token("abcdef123456", session)
    assert forum.id == "f-1"
    assert forum.times_accessed == 4
    assert forum.platform.value == "tiktok"

    assert await import_legacy_file(str(path), session) is None
    assert await import_legacy_file(str(tmp_path / "missing.json"), session) is None


async def test_import_legacy_file_rejects_bad_json(session, tmp_path):
    path = tmp_path / "db.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValidationError):
        await import_legacy_file(str(path), session)
