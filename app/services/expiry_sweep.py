import logging
from datetime import datetime
from typing import Callable

from ..models.invite import InviteStatus
from .audit import AuditService
from .invite_store import InviteStore

logger = logging.getLogger(__name__)


def sweep_expired_invites(store: InviteStore, clock: Callable[[], datetime] = datetime.utcnow) -> int:
    """
    Persist EXPIRED on ACTIVE invites whose expiry has passed.

    Storage and reporting hygiene only. Expiry is always checked live on
    read, so skipping or delaying the sweep never changes an outcome.
    """
    now = clock()
    marked = store.sweep_expired(now)
    if marked:
        AuditService.log_event(
            store.db,
            action="INVITE_EXPIRED_SWEEP",
            from_status=InviteStatus.ACTIVE.value,
            to_status=InviteStatus.EXPIRED.value,
            metadata={"count": marked, "swept_at": now.isoformat()},
        )
    store.commit()
    logger.info(f"Expiry sweep marked {marked} invite(s) as EXPIRED")
    return marked
