# outreach/services/pipeline_service.py
"""
Stage pipeline and starring.

Any stage may move to any other stage; a business without an assignment
is New. Writes go through whichever store the session is using and are
serialized per business.
"""

from outreach.infrastructure.observability.logging import get_logger
from outreach.models.domain.business_domain import StarKind
from outreach.models.domain.pipeline_domain import Stage, stage_of
from outreach.services.stores import OutreachStore, write_locks

logger = get_logger(__name__)


class StagePipeline:
    def __init__(self, store: OutreachStore):
        self.store = store

    async def get_stages(self) -> dict[str, Stage]:
        return await self.store.get_stages()

    async def get_stage(self, business_id: str) -> Stage:
        return stage_of(await self.store.get_stages(), business_id)

    async def set_stage(self, business_id: str, stage: Stage) -> Stage:
        stage = Stage(stage)
        async with write_locks.hold(self.store.write_scope("business_stages", business_id)):
            await self.store.set_stage(business_id, stage)

        logger.info("Stage changed", owner=self.store.owner, business_id=business_id, stage=stage.value)
        return stage

    async def list_starred(self, kind: StarKind) -> list[str]:
        return await self.store.list_starred(StarKind(kind))

    async def toggle_star(self, business_id: str, kind: StarKind) -> bool:
        """Flip the star for one business; returns the new state."""
        kind = StarKind(kind)
        async with write_locks.hold(self.store.write_scope(f"starred_{kind.value}", business_id)):
            starred = await self.store.toggle_starred(business_id, kind)

        logger.info(
            "Star toggled", owner=self.store.owner, business_id=business_id, kind=kind.value, starred=starred
        )
        return starred
