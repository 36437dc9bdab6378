"""
Legacy JSON document import / export.

The document shape is `{"forums": [...], "users": [...], "subscriptions": [...]}`
with camelCase records, as written by the earlier file-backed store.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from forumize.core.errors import ValidationError
from forumize.models.models import Forum, Platform, Subscription, SubscriptionTier, User, as_utc, utcnow
from forumize.services.platforms.detection import detect_platform

logger = logging.getLogger(__name__)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _tier(value: Any) -> SubscriptionTier:
    try:
        return SubscriptionTier(value or "free")
    except ValueError:
        return SubscriptionTier.FREE


# ── Export ───────────────────────────────────────────────────────────────

async def export_snapshot(db: AsyncSession) -> Dict[str, Any]:
    forums = (await db.execute(select(Forum).order_by(Forum.created_at))).scalars().all()
    users = (await db.execute(select(User).order_by(User.created_at))).scalars().all()
    subscriptions = (await db.execute(select(Subscription).order_by(Subscription.created_at))).scalars().all()

    return {
        "forums": [
            {
                "id": f.id,
                "videoId": f.video_id,
                "videoTitle": f.video_title,
                "videoChannel": f.video_channel,
                "platform": f.platform.value if f.platform else Platform.YOUTUBE.value,
                "forumData": f.forum_data,
                "forumyzedAt": isoformat(f.forumyzed_at),
                "createdAt": isoformat(f.created_at),
                "updatedAt": isoformat(f.updated_at),
                "lastAccessedAt": isoformat(f.last_accessed_at),
                "userId": f.user_id,
                "isPublic": f.is_public,
                "shareToken": f.share_token,
                "timesAccessed": f.times_accessed,
            }
            for f in forums
        ],
        "users": [
            {
                "id": u.id,
                "googleId": u.google_id,
                "email": u.email,
                "name": u.name,
                "picture": u.picture,
                "createdAt": isoformat(u.created_at),
                "subscriptionTier": u.subscription_tier.value,
            }
            for u in users
        ],
        "subscriptions": [
            {"id": s.id, "userId": s.user_id, "tier": s.tier.value, "createdAt": isoformat(s.created_at)}
            for s in subscriptions
        ],
    }


# ── Import ───────────────────────────────────────────────────────────────

async def import_snapshot(document: Dict[str, Any], db: AsyncSession) -> Dict[str, int]:
    """Insert every record of a legacy document; records missing required ids are skipped."""
    if not isinstance(document, dict):
        raise ValidationError("Legacy document must be a JSON object")

    counts = {"forums": 0, "users": 0, "subscriptions": 0}
    now = utcnow()

    user_ids = set()
    for record in document.get("users") or []:
        if not record.get("id") or not record.get("googleId"):
            continue
        db.add(User(
            id=record["id"],
            google_id=record["googleId"],
            email=record.get("email"),
            name=record.get("name"),
            picture=record.get("picture"),
            subscription_tier=_tier(record.get("subscriptionTier")),
            created_at=_parse_dt(record.get("createdAt")) or now,
        ))
        user_ids.add(record["id"])
        counts["users"] += 1

    for record in document.get("subscriptions") or []:
        if record.get("userId") not in user_ids:
            continue
        subscription = Subscription(
            user_id=record["userId"],
            tier=_tier(record.get("tier")),
            created_at=_parse_dt(record.get("createdAt")) or now,
        )
        if record.get("id"):
            subscription.id = record["id"]
        db.add(subscription)
        counts["subscriptions"] += 1

    for record in document.get("forums") or []:
        if not record.get("id") or not record.get("videoId"):
            continue
        forum_data = record.get("forumData")
        platform = record.get("platform") or (forum_data or {}).get("platform")
        try:
            platform = Platform(platform) if platform else detect_platform(record["videoId"])
        except ValueError:
            platform = detect_platform(record["videoId"])
        created = _parse_dt(record.get("createdAt")) or now
        db.add(Forum(
            id=record["id"],
            video_id=record["videoId"],
            video_title=record.get("videoTitle") or "",
            video_channel=record.get("videoChannel") or "",
            platform=platform,
            forum_data=forum_data,
            user_id=record.get("userId"),
            is_public=record.get("isPublic", True),
            share_token=record.get("shareToken"),
            times_accessed=record.get("timesAccessed") or 0,
            forumyzed_at=_parse_dt(record.get("forumyzedAt")) or created,
            created_at=created,
            updated_at=_parse_dt(record.get("updatedAt")) or created,
            last_accessed_at=_parse_dt(record.get("lastAccessedAt")),
        ))
        counts["forums"] += 1

    await db.flush()
    logger.info(f"Imported legacy document: {counts}")
    return counts


async def import_legacy_file(path: str, db: AsyncSession) -> Optional[Dict[str, int]]:
    """Import `path` into an empty datastore. None when skipped."""
    source = Path(path)
    if not source.is_file():
        logger.warning(f"Legacy db file {path} not found, skipping import")
        return None

    existing = await db.scalar(select(func.count()).select_from(Forum))
    existing += await db.scalar(select(func.count()).select_from(User))
    if existing:
        logger.info("Datastore already populated, skipping legacy import")
        return None

    try:
        document = json.loads(source.read_text(encoding="utf-8"))
    except ValueError as e:
        raise ValidationError(f"Legacy db file {path} is not valid JSON: {e}")
    return await import_snapshot(document, db)
