# Collaboration progress derived from deliverable statuses

import logging
from typing import Iterable, Union

from sqlalchemy.orm import Session

from config.app_config import PROGRESS_CAS_ATTEMPTS
from database.marketplace_models import Collaboration, Deliverable, DeliverableStatusDB
from services.errors import NotFound, StateConflict

logger = logging.getLogger(__name__)

# Published deliverables went through approval, so they still count.
APPROVED_STATES = {DeliverableStatusDB.APPROVED.value, DeliverableStatusDB.PUBLISHED.value}


def compute_progress(statuses: Iterable[Union[DeliverableStatusDB, str]]) -> int:
    """round(100 * approved / total), clamped to [0, 100]; 0 when there are no deliverables."""
    statuses = [s.value if isinstance(s, DeliverableStatusDB) else s for s in statuses]
    if not statuses:
        return 0
    approved = sum(1 for s in statuses if s in APPROVED_STATES)
    # int(x + 0.5) rounds halves up; round() would round them to even
    progress = int(100 * approved / len(statuses) + 0.5)
    return max(0, min(100, progress))


def recompute_progress(db: Session, collaboration_id: str) -> int:
    """
    Recompute and persist Collaboration.progress inside the caller's transaction.

    The write is conditional on the collaboration version read alongside the
    deliverables, so a concurrent writer forces a re-read instead of being
    overwritten.
    """
    for attempt in range(1, PROGRESS_CAS_ATTEMPTS + 1):
        row = db.query(Collaboration.version).filter(Collaboration.id == collaboration_id).first()
        if row is None:
            raise NotFound("Collaboration not found")
        version = row[0]

        statuses = [
            s for (s,) in db.query(Deliverable.status)
            .filter(Deliverable.collaboration_id == collaboration_id)
            .all()
        ]
        progress = compute_progress(statuses)

        updated = db.query(Collaboration).filter(
            Collaboration.id == collaboration_id,
            Collaboration.version == version,
        ).update({
            "progress": progress,
            "version": Collaboration.version + 1,
        }, synchronize_session="fetch")

        if updated:
            return progress

        logger.warning(f"Progress write for collaboration {collaboration_id} lost a race (attempt {attempt})")

    raise StateConflict("Collaboration was modified concurrently, please retry")
