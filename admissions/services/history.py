import logging
from typing import List, Optional, Union

from sqlalchemy import desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from admissions.models.admissions import StatusHistory
from admissions.schemas.enums import ApplicationStatus

logger = logging.getLogger(__name__)


async def record_transition(
    db: AsyncSession,
    student_id: int,
    old_status: Optional[Union[ApplicationStatus, str]],
    new_status: Union[ApplicationStatus, str],
    reason: Optional[str],
    changed_by: Optional[int],
) -> Optional[StatusHistory]:
    """
    Append one status history row, or nothing when the status did not change.

    The row is flushed inside the caller's transaction; a failed insert
    propagates so the whole operation rolls back.
    """
    old_value = ApplicationStatus(old_status).value if old_status is not None else None
    new_value = ApplicationStatus(new_status).value
    if old_value == new_value:
        return None

    entry = StatusHistory(
        student_id=student_id,
        old_status=old_value,
        new_status=new_value,
        reason=reason,
        changed_by=changed_by,
    )
    db.add(entry)
    await db.flush()
    await db.refresh(entry)

    logger.debug(f"Student {student_id} status history: {old_value} -> {new_value}")
    return entry


async def list_history(db: AsyncSession, student_id: int) -> List[StatusHistory]:
    """Status history for a student, newest first."""
    result = await db.execute(
        select(StatusHistory)
        .where(StatusHistory.student_id == student_id)
        .order_by(desc(StatusHistory.changed_at), desc(StatusHistory.id))
    )
    return list(result.scalars().all())
