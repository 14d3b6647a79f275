"""
Grading Ledger

The module tracker only talks to the grade book through GradingLedger.
DatabaseGradingLedger writes grade_items on the caller's session, so an item
is created and removed inside the caller's transaction.
"""

import logging
from typing import Any, Protocol

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.models.grade import GradeItem

logger = logging.getLogger(__name__)


class GradingLedger(Protocol):
    async def create_item(
        self,
        db: AsyncSession,
        course_id: int,
        course_module_id: int,
        module_name: str,
        instance_id: int,
        grading_info: dict[str, Any],
    ) -> int: ...

    async def delete_item(self, db: AsyncSession, course_id: int, module_name: str, instance_id: int) -> int: ...


class DatabaseGradingLedger:
    async def create_item(
        self,
        db: AsyncSession,
        course_id: int,
        course_module_id: int,
        module_name: str,
        instance_id: int,
        grading_info: dict[str, Any],
    ) -> int:
        item = GradeItem(
            course_id=course_id,
            course_module_id=course_module_id,
            item_type="mod",
            item_module=module_name,
            item_instance=instance_id,
            item_name=grading_info.get("item_name"),
            grade_max=float(grading_info.get("grade_max", 100.0)),
            grade_min=float(grading_info.get("grade_min", 0.0)),
        )
        db.add(item)
        await db.flush()
        logger.debug("Grade item %s created for %s/%s", item.id, module_name, instance_id)
        return item.id

    async def delete_item(self, db: AsyncSession, course_id: int, module_name: str, instance_id: int) -> int:
        """Delete the grade items of an activity instance; returns the number removed."""
        result = await db.execute(
            delete(GradeItem).where(
                GradeItem.course_id == course_id,
                GradeItem.item_type == "mod",
                GradeItem.item_module == module_name,
                GradeItem.item_instance == instance_id,
            )
        )
        return result.rowcount
