"""
Module Instance & Progress Tracker

Creates, updates and deletes activity instances inside course sections and
records per-user completion.

Creating an instance touches four places: the plugin-owned instance row, the
course module record, the section sequence and (for graded modules) the
grading ledger. All four are written on this service's session and committed
once; any failure rolls all of them back. Deletion mirrors this.

Writers to one section's sequence are serialized by a per-section keyed lock
held through commit, plus a row lock on backends with SELECT ... FOR UPDATE.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.constants import CompletionState, PluginType
from plugin_host.exceptions import (
    CourseModuleNotFoundError,
    InvalidOperationError,
    PluginDisabledError,
    PluginHostError,
    SectionNotFoundError,
)
from plugin_host.models.course_module import CourseModule, CourseModuleCompletion, CourseSection
from plugin_host.plugins.loader import PluginLoader
from plugin_host.plugins.registry import PluginRegistry
from plugin_host.services.enrollment import EnrollmentChecker
from plugin_host.services.grading import GradingLedger
from plugin_host.services.section_sequence import SectionSequence
from plugin_host.utils.clock import utcnow
from plugin_host.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

# Course module fields a caller may change after creation
MUTABLE_FIELDS = (
    "idnumber",
    "visible",
    "visible_on_course_page",
    "indent",
    "group_mode",
    "completion",
    "completion_view",
    "completion_expected",
    "show_description",
    "availability",
)


@dataclass
class ModuleInstanceRef:
    instance_id: int
    course_module_id: int
    module: str


class ModuleService:
    """Service for activity module instances and completion tracking."""

    def __init__(
        self,
        db: AsyncSession,
        loader: PluginLoader,
        registry: PluginRegistry,
        grading_ledger: GradingLedger,
        enrollment_checker: EnrollmentChecker,
        section_locks: KeyedLock | None = None,
    ):
        self.db = db
        self.loader = loader
        self.registry = registry
        self.grading_ledger = grading_ledger
        self.enrollment_checker = enrollment_checker
        self.section_locks = section_locks or KeyedLock()

    # ============== Lookups ==============

    async def get_course_module(self, course_module_id: int) -> CourseModule:
        course_module = await self.db.get(CourseModule, course_module_id)
        if course_module is None:
            raise CourseModuleNotFoundError(course_module_id)
        return course_module

    async def get_section(self, section_id: int) -> CourseSection:
        section = await self.db.get(CourseSection, section_id)
        if section is None:
            raise SectionNotFoundError(section_id)
        return section

    async def _lock_section(self, section_id: int) -> CourseSection | None:
        """
        Re-read a section row for a sequence update.

        Callers hold the section's keyed lock until they commit. The row is
        reloaded so a sequence written by an earlier holder is not lost, and
        read FOR UPDATE on backends that render it.
        """
        result = await self.db.execute(
            select(CourseSection)
            .where(CourseSection.id == section_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _require_enabled(self, module_name: str) -> None:
        if not await self.registry.is_enabled(PluginType.MODULE, module_name):
            raise PluginDisabledError(PluginType.MODULE.value, module_name)

    # ============== Instance Management ==============

    async def create_instance(
        self, module_name: str, course_id: int, section_id: int, data: dict[str, Any]
    ) -> ModuleInstanceRef:
        """
        Create an activity instance and attach it to a course section.

        Raises:
            PluginDisabledError: the module plugin is not enabled.
            SectionNotFoundError: the section does not exist.
            InvalidOperationError: the section belongs to another course.
        """
        await self._require_enabled(module_name)
        module = await self.loader.load_module(module_name)

        section = await self.get_section(section_id)
        if section.course_id != course_id:
            raise InvalidOperationError(
                f"Section {section_id} does not belong to course {course_id}",
                details={"section_id": section_id, "course_id": course_id},
            )

        data = {**data, "course_id": course_id}
        async with self.section_locks.hold(section_id):
            try:
                section = await self._lock_section(section_id)
                if section is None:
                    raise SectionNotFoundError(section_id)
                instance_id = await module.add_instance(self.db, data)

                course_module = CourseModule(
                    course_id=course_id,
                    module=module_name,
                    instance_id=instance_id,
                    section_id=section_id,
                    idnumber=data.get("idnumber"),
                    visible=data.get("visible", True),
                    visible_on_course_page=data.get("visible_on_course_page", True),
                    indent=data.get("indent", 0),
                    group_mode=data.get("group_mode", 0),
                    completion=data.get("completion", 0),
                    completion_view=data.get("completion_view", False),
                    completion_expected=data.get("completion_expected"),
                    show_description=data.get("show_description", False),
                    availability=data.get("availability"),
                )
                self.db.add(course_module)
                await self.db.flush()

                sequence = SectionSequence.from_storage(section.sequence)
                sequence.append(course_module.id)
                section.sequence = sequence.to_storage()

                if module.get_supported_features().grade:
                    grading_info = await module.get_grading_info(self.db, instance_id)
                    if data.get("name"):
                        grading_info.setdefault("item_name", data["name"])
                    await self.grading_ledger.create_item(
                        self.db, course_id, course_module.id, module_name, instance_id, grading_info
                    )

                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                logger.error("Error creating %s instance in course %s: %s", module_name, course_id, e)
                raise

        logger.info(
            "Module instance created: %s instance=%s course_module=%s", module_name, instance_id, course_module.id
        )
        return ModuleInstanceRef(instance_id=instance_id, course_module_id=course_module.id, module=module_name)

    async def update_instance(self, course_module_id: int, data: dict[str, Any]) -> CourseModule:
        """Delegate to the plugin, then update only the mutable fields present in data."""
        course_module = await self.get_course_module(course_module_id)
        module = await self.loader.load_module(course_module.module)

        try:
            await module.update_instance(self.db, course_module.instance_id, data)
            for field_name in MUTABLE_FIELDS:
                if field_name in data:
                    setattr(course_module, field_name, data[field_name])
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Error updating course module %s: %s", course_module_id, e)
            raise

        logger.info("Module instance updated: course_module=%s", course_module_id)
        return course_module

    async def delete_instance(self, course_module_id: int) -> None:
        """Delete the plugin instance, its grade item, its sequence entry and the record."""
        course_module = await self.get_course_module(course_module_id)
        module = await self.loader.load_module(course_module.module)
        section_id = course_module.section_id

        async with self.section_locks.hold(section_id):
            try:
                section = await self._lock_section(section_id)
                await module.delete_instance(self.db, course_module.instance_id)
                await self.grading_ledger.delete_item(
                    self.db, course_module.course_id, course_module.module, course_module.instance_id
                )

                if section is not None:
                    sequence = SectionSequence.from_storage(section.sequence)
                    sequence.remove(course_module.id)
                    section.sequence = sequence.to_storage()

                await self.db.execute(
                    delete(CourseModuleCompletion).where(CourseModuleCompletion.course_module_id == course_module_id)
                )
                await self.db.delete(course_module)
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                logger.error("Error deleting course module %s: %s", course_module_id, e)
                raise

        logger.info("Module instance deleted: course_module=%s", course_module_id)

    # ============== Views ==============

    async def get_view(self, course_module_id: int, user_id: int) -> str:
        course_module = await self.get_course_module(course_module_id)
        module = await self.loader.load_module(course_module.module)
        return await module.get_view(self.db, course_module.instance_id, user_id)

    async def handle_ajax(self, module_name: str, action: str, params: dict[str, Any]) -> dict[str, Any]:
        await self._require_enabled(module_name)
        module = await self.loader.load_module(module_name)
        try:
            response = await module.handle_ajax(self.db, action, params)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Ajax action %s of %s failed: %s", action, module_name, e)
            raise
        return response

    async def list_course_modules(self, course_id: int, include_hidden: bool = False) -> list[dict[str, Any]]:
        """Sections in course order, each with its modules in sequence order."""
        sections = (
            await self.db.execute(
                select(CourseSection).where(CourseSection.course_id == course_id).order_by(CourseSection.section)
            )
        ).scalars().all()
        modules = (
            await self.db.execute(select(CourseModule).where(CourseModule.course_id == course_id))
        ).scalars().all()
        by_id = {course_module.id: course_module for course_module in modules}

        listing = []
        for section in sections:
            entries = []
            for course_module_id in SectionSequence.from_storage(section.sequence):
                course_module = by_id.get(course_module_id)
                if course_module is None or (not course_module.visible and not include_hidden):
                    continue
                entries.append(
                    {
                        "course_module_id": course_module.id,
                        "module": course_module.module,
                        "instance_id": course_module.instance_id,
                        "visible": course_module.visible,
                        "indent": course_module.indent,
                        "completion": course_module.completion,
                    }
                )
            listing.append(
                {"section_id": section.id, "section": section.section, "name": section.name, "modules": entries}
            )
        return listing

    async def available_modules(self) -> list[dict[str, Any]]:
        """Enabled, loadable modules with their features and capabilities."""
        available = []
        for name in sorted(await self.registry.enabled_names(PluginType.MODULE)):
            try:
                module = await self.loader.load_module(name)
            except PluginHostError as exc:
                logger.warning("Module %s unavailable: %s", name, exc.message)
                continue
            available.append(
                {
                    "name": name,
                    "version": module.descriptor.version,
                    "release": module.descriptor.release,
                    "icon": module.icon,
                    "description": module.description,
                    "features": asdict(module.get_supported_features()),
                    "capabilities": [capability.name for capability in module.get_capabilities()],
                }
            )
        return available

    # ============== Completion & Access ==============

    async def _get_completion(self, user_id: int, course_module_id: int) -> CourseModuleCompletion | None:
        result = await self.db.execute(
            select(CourseModuleCompletion).where(
                CourseModuleCompletion.user_id == user_id,
                CourseModuleCompletion.course_module_id == course_module_id,
            )
        )
        return result.scalar_one_or_none()

    async def record_completion(self, user_id: int, course_module_id: int, state: int) -> CourseModuleCompletion:
        """
        Upsert the completion row for (user, course module). Always marks viewed.

        A concurrent insert of the same row surfaces as an IntegrityError; the
        upsert is then retried once and takes the update path.
        """
        try:
            state = CompletionState(state)
        except ValueError as exc:
            raise InvalidOperationError(f"Unknown completion state {state!r}") from exc
        await self.get_course_module(course_module_id)

        for attempt in range(2):
            try:
                record = await self._get_completion(user_id, course_module_id)
                if record is None:
                    record = CourseModuleCompletion(user_id=user_id, course_module_id=course_module_id)
                    self.db.add(record)
                record.completion_state = state.value
                record.viewed = True
                record.time_modified = utcnow()
                await self.db.commit()
                break
            except IntegrityError:
                await self.db.rollback()
                if attempt:
                    raise
                logger.debug("Completion insert raced for user=%s cm=%s, retrying", user_id, course_module_id)
            except Exception as e:
                await self.db.rollback()
                logger.error("Error recording completion for user=%s cm=%s: %s", user_id, course_module_id, e)
                raise

        return record

    async def get_completion_status(self, user_id: int, course_module_id: int) -> dict[str, Any]:
        record = await self._get_completion(user_id, course_module_id)
        if record is None:
            return {"completed": False, "state": CompletionState.INCOMPLETE.value, "viewed": False, "time_modified": None}
        return {
            "completed": record.completion_state != CompletionState.INCOMPLETE.value,
            "state": record.completion_state,
            "viewed": record.viewed,
            "time_modified": record.time_modified,
        }

    async def can_access(self, user_id: int, course_module_id: int) -> bool:
        """The module exists, is visible and the user is actively enrolled in its course."""
        course_module = await self.db.get(CourseModule, course_module_id)
        if course_module is None or not course_module.visible:
            return False
        return await self.enrollment_checker.is_actively_enrolled(user_id, course_module.course_id)
