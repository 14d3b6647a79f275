"""
Capability Service

Stores capabilities declared by plugins. Registration is an upsert by
capability name and never removes rows; enforcement happens elsewhere.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from plugin_host.models.plugin_state import Capability
from plugin_host.plugins.base import CapabilityDefinition

logger = logging.getLogger(__name__)


class CapabilityService:
    """Service for registering and listing plugin capabilities."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def register(self, component: str, definitions: list[CapabilityDefinition]) -> int:
        """
        Upsert capabilities by name for a component.

        Does not commit; the caller owns the transaction.

        Returns:
            Number of capabilities newly created.
        """
        if not definitions:
            return 0

        names = [definition.name for definition in definitions]
        result = await self.db.execute(select(Capability).where(Capability.name.in_(names)))
        existing = {cap.name: cap for cap in result.scalars().all()}

        created = 0
        for definition in definitions:
            cap = existing.get(definition.name)
            if cap is None:
                cap = Capability(name=definition.name)
                self.db.add(cap)
                existing[definition.name] = cap
                created += 1
            cap.captype = definition.captype
            cap.context_level = definition.context_level
            cap.component = component
            cap.risk_bitmask = definition.risk_bitmask

        await self.db.flush()
        logger.debug("Capabilities registered for %s: %d new, %d total", component, created, len(definitions))
        return created

    async def list(self, component: str | None = None) -> list[Capability]:
        query = select(Capability).order_by(Capability.name)
        if component is not None:
            query = query.where(Capability.component == component)
        result = await self.db.execute(query)
        return list(result.scalars().all())
