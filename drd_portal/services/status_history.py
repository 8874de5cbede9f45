from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from drd_portal.models.status_history import StatusHistoryEntry


class StatusHistoryService:
    """
    Append-only transition log.

    `append` never commits: it joins the caller's unit of work so the entry
    and the status change it records succeed or fail together.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _last_entry(self, submission_id: str) -> Optional[StatusHistoryEntry]:
        result = await self.db.execute(
            select(StatusHistoryEntry)
            .where(StatusHistoryEntry.submission_id == submission_id)
            .order_by(StatusHistoryEntry.sequence.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def append(
        self,
        submission_id: str,
        event: str,
        from_status: Optional[str],
        to_status: str,
        actor_id: str,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StatusHistoryEntry:
        last = await self._last_entry(submission_id)

        # Timestamps must stay strictly increasing per submission
        now = datetime.utcnow()
        if last is not None and now <= last.created_at:
            now = last.created_at + timedelta(microseconds=1)

        entry = StatusHistoryEntry(
            submission_id=submission_id,
            sequence=(last.sequence + 1) if last else 1,
            event=event,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            comment=comment,
            details=metadata or {},
            created_at=now,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def history(self, submission_id: str) -> List[StatusHistoryEntry]:
        result = await self.db.execute(
            select(StatusHistoryEntry)
            .where(StatusHistoryEntry.submission_id == submission_id)
            .order_by(StatusHistoryEntry.created_at.asc(), StatusHistoryEntry.sequence.asc())
        )
        return list(result.scalars().all())

    async def count(self, submission_id: str) -> int:
        result = await self.db.execute(
            select(func.count(StatusHistoryEntry.id))
            .where(StatusHistoryEntry.submission_id == submission_id)
        )
        return result.scalar() or 0
