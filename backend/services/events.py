from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..models import EventRecord

ENTRY_RECORDED = "EntryRecorded"
DRAW_REQUESTED = "DrawRequested"
WINNER_PICKED = "WinnerPicked"

logger = logging.getLogger("raffle.events")


class EventRepository:
    """Stores emitted notifications in the caller's transaction.

    Records vanish together with the rest of the call when it rolls back,
    so only notifications of committed calls are ever observable.
    """

    def emit(self, session: Session, name: str, **args: Any) -> EventRecord:
        record = EventRecord(name=name)
        record.set_payload(args)
        session.add(record)
        session.flush()
        logger.info("%s %s", name, args)
        return record

    def list_events(
        self, session: Session, name: Optional[str] = None, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        query = session.query(EventRecord)
        if name:
            query = query.filter(EventRecord.name == name)
        query = query.order_by(desc(EventRecord.id))
        if limit:
            query = query.limit(limit)
        return [record.to_dict() for record in query.all()]
