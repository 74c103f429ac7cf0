"""
EventSelector -- polling interface over the registry event outbox.

Consumers remember the last seq they processed and ask for everything
after it:

    events = EventSelector(session).list_events(after_seq=last_seen)
"""

from sqlalchemy import select

from grants_kernel.domain.dtos import RegistryEventInfo
from grants_kernel.models.registry_event import RegistryEvent
from grants_kernel.selectors.base import BaseSelector


class EventSelector(BaseSelector[RegistryEvent]):

    def list_events(
        self,
        after_seq: int = 0,
        limit: int | None = None,
    ) -> list[RegistryEventInfo]:
        """Events with seq > ``after_seq`` in seq order."""
        query = (
            select(RegistryEvent)
            .where(RegistryEvent.seq > after_seq)
            .order_by(RegistryEvent.seq)
        )
        if limit is not None:
            query = query.limit(limit)
        return [
            RegistryEventInfo.from_model(e)
            for e in self.session.execute(query).scalars().all()
        ]

    def for_proposal(self, proposal_id: int) -> list[RegistryEventInfo]:
        rows = self.session.execute(
            select(RegistryEvent)
            .where(RegistryEvent.proposal_id == proposal_id)
            .order_by(RegistryEvent.seq)
        ).scalars().all()
        return [RegistryEventInfo.from_model(e) for e in rows]

    def latest_seq(self) -> int:
        value = self.session.execute(
            select(RegistryEvent.seq).order_by(RegistryEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return value or 0
