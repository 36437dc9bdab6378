import asyncio
from datetime import datetime, timedelta

from conftest import StubYouTube, offline_categorizer

from forumize.api.deps import get_forumize_service, get_live_chat_service
from forumize.main import app
from forumize.services.forums.forumize_service import ForumizeService
from forumize.services.live.live_chat_service import LiveChatService
from forumize.services.moderation.state_store import UserStateStore
from forumize.services.platforms.tiktok_service import TikTokService

FORUM_DATA = {
    "threads": [
        {"id": "t1", "author": "ann", "text": "hello", "category": "genuine", "replies": [
            {"id": "t1r1", "author": "bob", "text": "hi", "category": "genuine", "replies": []},
        ]},
        {"id": "t2", "author": "cat", "text": "second", "category": "genuine", "replies": []},
    ],
    "stats": {"totalComments": 3},
}


def _save(api, user_id=None, video_id="dQw4w9WgXcQ"):
    headers = {"X-User-Id": user_id} if user_id else {}
    response = api.post(
        "/api/forum/save",
        json={"videoId": video_id, "videoTitle": "Song", "videoChannel": "Band", "forumData": FORUM_DATA},
        headers=headers,
    )
    assert response.status_code == 200
    return response.json()["id"]


def test_health(api):
    body = api.get("/health").json()
    assert body["status"] == "ok"
    assert body["uptime"] >= 0


def test_save_then_fetch(api):
    forum_id = _save(api)

    body = api.get(f"/api/forum/{forum_id}").json()

    assert body["id"] == forum_id
    assert body["forumData"] == FORUM_DATA
    assert body["videoTitle"] == "Song"
    assert body["platform"] == "youtube"
    assert body["isPublic"] is True
    assert body["shareToken"] is None


def test_timestamps_carry_utc_offset(api):
    forum_id = _save(api)

    body = api.get(f"/api/forum/{forum_id}").json()

    for field in ("createdAt", "updatedAt", "forumyzedAt"):
        parsed = datetime.fromisoformat(body[field].replace("Z", "+00:00"))
        assert parsed.utcoffset() == timedelta(0)


def test_unknown_forum(api):
    response = api.get("/api/forum/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "Forum not found"}


def test_share_token_overwrites_previous(api):
    forum_id = _save(api)

    first = api.post(f"/api/forum/{forum_id}/share").json()["shareToken"]
    second = api.post(f"/api/forum/{forum_id}/share").json()["shareToken"]

    assert first != second
    assert api.get(f"/api/forum/share/{first}").status_code == 404
    shared = api.get(f"/api/forum/share/{second}")
    assert shared.status_code == 200
    assert shared.json()["id"] == forum_id
    assert api.post("/api/forum/missing/share").status_code == 404


def test_library_filters_by_user(api):
    mine = _save(api, user_id="u1")
    _save(api, user_id="u2")
    anonymous = _save(api)

    assert [f["id"] for f in api.get("/api/forum/library", headers={"X-User-Id": "u1"}).json()] == [mine]
    assert [f["id"] for f in api.get("/api/forum/library").json()] == [anonymous]


def test_reply_to_nested_comment(api):
    forum_id = _save(api)

    response = api.post(
        f"/api/forum/{forum_id}/reply",
        json={"threadId": "t1r1", "text": "<b>why?</b>", "author": "dan"},
        headers={"X-User-Id": "u5"},
    )

    assert response.status_code == 200
    reply = response.json()["forumData"]["threads"][0]["replies"][0]["replies"][0]
    assert reply["text"] == "why?"
    assert reply["category"] == "question"
    assert reply["authorId"] == "u5"

    stored = api.get(f"/api/forum/{forum_id}").json()["forumData"]
    assert stored["threads"][0]["replies"][0]["replies"][0]["id"] == reply["id"]


def test_reply_to_missing_thread_leaves_forum_unchanged(api):
    forum_id = _save(api)
    before = api.get(f"/api/forum/{forum_id}").json()

    response = api.post(f"/api/forum/{forum_id}/reply", json={"threadId": "ghost", "text": "hi"})

    assert response.status_code == 404
    assert response.json() == {"error": "Thread not found"}
    assert api.get(f"/api/forum/{forum_id}").json() == before


def test_reply_validation_error_shape(api):
    forum_id = _save(api)
    response = api.post(f"/api/forum/{forum_id}/reply", json={"text": "hi"})
    assert response.status_code == 400
    assert "threadId" in response.json()["error"]


def test_suspended_user_cannot_reply(api, timeouts):
    forum_id = _save(api)
    asyncio.run(timeouts.flag_user_for_timeout("u7", "troll", "bad", "Toxic"))
    timeouts.suspend_user("u7", 600)

    response = api.post(f"/api/forum/{forum_id}/reply", json={"threadId": "t1", "text": "hi"},
                        headers={"X-User-Id": "u7"})
    assert response.status_code == 403


def test_rapid_replies_are_rate_limited(api):
    forum_id = _save(api)
    headers = {"X-User-Id": "fast"}

    statuses = [
        api.post(f"/api/forum/{forum_id}/reply", json={"threadId": "t2", "text": f"msg {i}"}, headers=headers).status_code
        for i in range(11)
    ]

    assert statuses == [200] * 10 + [429]
    assert api.get("/api/moderation/bots/fast").json()["flaggedAsBot"] is True

    api.post("/api/moderation/bots/fast/unblock")
    stats = api.get("/api/moderation/bots/fast").json()
    assert stats == {"totalTrackedPosts": 0, "postsIn30s": 0, "isBot": False, "flaggedAsBot": False}


def test_failed_replies_do_not_count_as_posts(api):
    forum_id = _save(api)
    headers = {"X-User-Id": "lost"}

    for _ in range(12):
        missing_thread = api.post(f"/api/forum/{forum_id}/reply", json={"threadId": "ghost", "text": "hi"},
                                  headers=headers)
        missing_forum = api.post("/api/forum/nope/reply", json={"threadId": "t1", "text": "hi"}, headers=headers)
        assert missing_thread.status_code == 404
        assert missing_forum.status_code == 404

    stats = api.get("/api/moderation/bots/lost").json()
    assert stats["totalTrackedPosts"] == 0
    assert stats["flaggedAsBot"] is False


def test_audio_summary(api):
    forum_id = _save(api)
    assert api.get(f"/api/forum/{forum_id}/audio").json() == {"audioUrl": "/audio/placeholder-summary.mp3"}


def test_forumize_route(api):
    youtube = StubYouTube(threads=[{"id": "a", "author": "x", "text": "subscribe now", "replies": []}])
    app.dependency_overrides[get_forumize_service] = lambda: ForumizeService(
        youtube=youtube,
        tiktok=TikTokService(apify_token="", rapidapi_key=""),
        categorizer=offline_categorizer(),
    )

    response = api.post("/api/forumize", json={"videoId": "dQw4w9WgXcQ", "maxResults": 5})

    assert response.status_code == 200
    body = response.json()
    assert body["platform"] == "youtube"
    assert body["stats"]["spamCount"] == 1
    assert body["stats"]["spamPercentage"] == 100
    assert youtube.calls == [("threads", "dQw4w9WgXcQ", 5)]


def test_forumize_route_validation(api):
    assert api.post("/api/forumize", json={}).status_code == 400
    assert api.post("/api/forumize", json={"videoId": "x", "maxResults": 500}).status_code == 400

    app.dependency_overrides[get_forumize_service] = lambda: ForumizeService(youtube=StubYouTube())
    response = api.post("/api/forumize", json={"videoId": "x", "platform": "vimeo"})
    assert response.status_code == 400
    assert "Unsupported platform" in response.json()["error"]


def test_forumyze_route_uses_saved_forum(api):
    _save(api, video_id="abcdefghijk")
    youtube = StubYouTube()
    app.dependency_overrides[get_forumize_service] = lambda: ForumizeService(youtube=youtube)

    body = api.post("/api/forumyze", json={"videoId": "abcdefghijk"}).json()

    assert body["cached"] is True
    assert body["timesAccessed"] == 1
    assert body["threads"] == FORUM_DATA["threads"]
    assert youtube.calls == []


def test_live_routes(api, detector):
    youtube = StubYouTube(live={"isLive": False, "isUpcoming": True, "scheduledStartTime": "2030-01-01T00:00:00Z"})
    app.dependency_overrides[get_live_chat_service] = lambda: LiveChatService(
        youtube=youtube, categorizer=offline_categorizer(), detector=detector, boards=UserStateStore(),
    )

    status = api.get("/api/video/abcdefghijk/live-status").json()
    assert status["isLive"] is False
    assert status["isUpcoming"] is True

    body = api.post("/api/forumize/live", json={"videoId": "abcdefghijk"}).json()
    assert body["isLive"] is False
    assert body["error"] == "Stream is scheduled but not live yet"


def test_timeout_routes(api, timeouts):
    assert api.get("/api/timeout/user/nobody").status_code == 404

    asyncio.run(timeouts.flag_user_for_timeout("u1", "spammer", "www.x.com", "Spam"))

    users = api.get("/api/timeout/users").json()["users"]
    assert [u["userId"] for u in users] == ["u1"]

    entry = api.post("/api/timeout/respond", json={"userId": "u1", "response": "sorry"}).json()
    assert entry["userResponse"] == "sorry"

    assert api.post("/api/timeout/vote", json={"userId": "u1", "voterId": "v", "voteType": "maybe"}).status_code == 400
    for i in range(5):
        entry = api.post("/api/timeout/vote", json={"userId": "u1", "voterId": f"v{i}", "voteType": "restore"}).json()
    assert entry["status"] == "restored"
    assert entry["onProbation"] is True
    assert api.post("/api/timeout/vote", json={"userId": "u1", "voterId": "v9", "voteType": "keep"}).status_code == 409

    assert api.get("/api/timeout/users?status=restored").json()["users"][0]["userId"] == "u1"
    assert api.get("/api/timeout/users?status=bogus").status_code == 400


def test_voluntary_timeout_route(api):
    payload = {"userId": "p1", "username": "payer", "topic": "Modular synths?"}
    assert api.post("/api/timeout/voluntary", json=payload).status_code == 403

    entry = api.post("/api/timeout/voluntary", json={**payload, "isPaidUser": True}).json()
    assert entry["status"] == "voluntary"
    assert entry["topic"] == "Modular synths?"


def test_user_routes(api):
    created = api.post("/api/users", json={"googleId": "g-1", "email": "ann@example.com", "name": "Ann"}).json()
    again = api.post("/api/users", json={"googleId": "g-1"}).json()
    assert created["id"] == again["id"]
    assert created["subscriptionTier"] == "free"

    updated = api.put(f"/api/users/{created['id']}/subscription", json={"tier": "pro"}).json()
    assert updated["subscriptionTier"] == "pro"
    assert [s["tier"] for s in updated["subscriptions"]] == ["pro"]

    fetched = api.get(f"/api/users/{created['id']}").json()
    assert fetched["subscriptionTier"] == "pro"
    assert len(fetched["subscriptions"]) == 1

    assert api.get("/api/users/missing").status_code == 404
    assert api.put(f"/api/users/{created['id']}/subscription", json={"tier": "gold"}).status_code == 400


def test_admin_export(api):
    forum_id = _save(api)
    api.post("/api/users", json={"googleId": "g-2"})

    document = api.get("/api/admin/export").json()

    assert set(document) == {"forums", "users", "subscriptions"}
    assert document["forums"][0]["id"] == forum_id
    assert document["users"][0]["googleId"] == "g-2"
