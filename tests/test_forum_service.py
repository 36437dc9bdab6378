import copy
import re
from datetime import datetime, timedelta, timezone

import pytest

from forumize.core.errors import NotFoundError
from forumize.models.models import Platform, as_utc
from forumize.services.forums.forum_service import ForumService

FORUM_DATA = {
    "threads": [
        {"id": "t1", "author": "ann", "text": "hello", "category": "genuine", "replies": [
            {"id": "t1r1", "author": "bob", "text": "hi back", "category": "genuine", "replies": []},
        ]},
        {"id": "t2", "author": "cat", "text": "www.x.com", "category": "spam", "replies": []},
    ],
    "stats": {"totalComments": 3},
    "platform": "youtube",
}

forums = ForumService()


async def test_save_then_fetch_returns_identical_data(session):
    forum = await forums.create(session, "dQw4w9WgXcQ", copy.deepcopy(FORUM_DATA), "Title", "Channel")

    fetched = await forums.find_by_id(forum.id, session)

    assert fetched.forum_data == FORUM_DATA
    assert fetched.platform == Platform.YOUTUBE
    assert fetched.is_public is True
    assert fetched.share_token is None
    assert fetched.times_accessed == 0


async def test_create_sanitizes_metadata_and_detects_tiktok(session):
    forum = await forums.create(
        session, "7212345678901234567", {"threads": []}, "<b>Clip</b>", "chan\x00nel", user_id="u1",
    )
    assert forum.video_title == "Clip"
    assert forum.video_channel == "channel"
    assert forum.platform == Platform.TIKTOK
    assert forum.user_id == "u1"


async def test_share_token_regeneration_replaces_old_token(session):
    forum = await forums.create(session, "vid", {"threads": []})

    first = await forums.generate_share_token(forum.id, session)
    second = await forums.generate_share_token(forum.id, session)

    assert re.fullmatch(r"[0-9a-f]{12}", first)
    assert first != second
    assert await forums.find_by_share_token(first, session) is None
    assert (await forums.find_by_share_token(second, session)).id == forum.id
    assert await forums.generate_share_token("missing", session) is None


async def test_add_reply_at_any_depth(session):
    forum = await forums.create(session, "vid", copy.deepcopy(FORUM_DATA))
    reply = forums.build_reply("are you sure?", "dan", "u9")

    updated = await forums.add_reply(forum.id, "t1r1", reply, session)

    nested = updated.forum_data["threads"][0]["replies"][0]["replies"]
    assert nested == [reply]
    assert reply["category"] == "question"
    assert reply["authorId"] == "u9"
    assert updated.forum_data["stats"] == FORUM_DATA["stats"]


async def test_add_reply_unknown_thread_leaves_forum_unchanged(session):
    forum = await forums.create(session, "vid", copy.deepcopy(FORUM_DATA))
    updated_at = forum.updated_at

    with pytest.raises(NotFoundError, match="Thread not found"):
        await forums.add_reply(forum.id, "nope", forums.build_reply("x", None, None), session)

    fetched = await forums.find_by_id(forum.id, session)
    assert fetched.forum_data == FORUM_DATA
    assert fetched.updated_at == updated_at


async def test_add_reply_unknown_forum(session):
    with pytest.raises(NotFoundError, match="Forum not found"):
        await forums.add_reply("missing", "t1", {"id": "r"}, session)


async def test_find_by_video_id_counts_access(session):
    await forums.create(session, "vid", {"threads": []})

    await forums.find_by_video_id("vid", session)
    forum = await forums.find_by_video_id("vid", session)

    assert forum.times_accessed == 2
    assert forum.last_accessed_at is not None
    assert await forums.find_by_video_id("other", session) is None


async def test_find_by_user(session):
    await forums.create(session, "v1", {}, user_id="u1")
    await forums.create(session, "v2", {}, user_id="u1")
    await forums.create(session, "v3", {})

    assert sorted(f.video_id for f in await forums.find_by_user("u1", session)) == ["v1", "v2"]
    assert [f.video_id for f in await forums.find_by_user(None, session)] == ["v3"]
    assert await forums.find_by_user("u2", session) == []


def test_build_reply_sanitizes_and_truncates():
    reply = ForumService.build_reply("<i>hello</i> world", "  ", None, max_length=5)
    assert reply["text"] == "hello"
    assert reply["author"] == "Anonymous"
    assert reply["replies"] == []
    assert reply["category"] == "genuine"


async def test_to_schema_serializes_camel_case(session):
    forum = await forums.create(session, "vid", {"threads": []}, user_id="u1")
    body = forums.to_schema(forum).model_dump(by_alias=True)
    assert body["videoId"] == "vid"
    assert body["platform"] == "youtube"
    assert body["userId"] == "u1"
    assert body["timesAccessed"] == 0
    assert "forumData" in body


def test_as_utc_marks_naive_values():
    naive = datetime(2024, 1, 2, 3, 4, 5)
    assert as_utc(naive) == naive.replace(tzinfo=timezone.utc)
    assert as_utc(datetime(2024, 1, 2, 5, 4, 5, tzinfo=timezone(timedelta(hours=2)))).hour == 3
    assert as_utc(None) is None
