from typing import Protocol

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.constants import ENROL_USER_ACTIVE
from plugin_host.models.enrollment import UserEnrolment
from plugin_host.utils.clock import utcnow


class EnrollmentChecker(Protocol):
    async def is_actively_enrolled(self, user_id: int, course_id: int) -> bool: ...


class DatabaseEnrollmentChecker:
    """Active means status 0 and inside the optional start/end window."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_actively_enrolled(self, user_id: int, course_id: int) -> bool:
        now = utcnow()
        result = await self.db.execute(
            select(UserEnrolment.id).where(
                UserEnrolment.user_id == user_id,
                UserEnrolment.course_id == course_id,
                UserEnrolment.status == ENROL_USER_ACTIVE,
                or_(UserEnrolment.time_start.is_(None), UserEnrolment.time_start <= now),
                or_(UserEnrolment.time_end.is_(None), UserEnrolment.time_end > now),
            )
        )
        return result.scalar_one_or_none() is not None
