from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Optional

from drd_portal.core.config import ApplicationNumberConfig
from drd_portal.models.submission import Submission
from drd_portal.schemas.payloads import SubmissionPayload
from drd_portal.services.kinds import KindProfile


def format_application_number(prefix: str, year: int, sequence: int, width: int) -> str:
    """PAT-2025-0001"""
    return f"{prefix}-{year}-{sequence:0{width}d}"


class ApplicationNumberGenerator:
    """
    Assigns human-readable application numbers at first submit.

    The next sequence is one above the highest number already issued for the
    same prefix and year. The unique index on `application_number` turns a
    concurrent duplicate into an IntegrityError for the caller to handle.
    """

    def __init__(self, db: AsyncSession, config: ApplicationNumberConfig):
        self.db = db
        self.config = config

    async def next_number(
        self,
        profile: KindProfile,
        payload: SubmissionPayload,
        year: Optional[int] = None,
    ) -> str:
        prefix, width = profile.prefix_for(payload, self.config)
        year = year or datetime.utcnow().year
        stem = f"{prefix}-{year}-"

        result = await self.db.execute(
            select(Submission.application_number)
            .where(Submission.application_number.like(f"{stem}%"))
        )

        highest = 0
        for number in result.scalars().all():
            tail = number[len(stem):]
            if tail.isdigit():
                highest = max(highest, int(tail))

        return format_application_number(prefix, year, highest + 1, width)
