"""
Forumize API — Admin routes.
"""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from forumize.core.database import get_db
from forumize.services.forums.snapshot import export_snapshot

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/export")
async def export_datastore(db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    """Whole datastore as a `{forums, users, subscriptions}` document."""
    return await export_snapshot(db)
