import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.orm import Session

from washboard.core.config import settings
from washboard.db.models import MagicLink
from washboard.db.session import SessionLocal
from washboard.tasks.celery_app import celery_app

logger = logging.getLogger("washboard.tasks")


def prune_expired_magic_links(db: Session, now: datetime | None = None) -> int:
    current_time = now or datetime.now(UTC)
    cutoff = current_time - timedelta(days=settings.magic_link_retention_days)

    # used links stay: their bookings point back at them
    result = db.execute(
        delete(MagicLink)
        .where(MagicLink.used_at.is_(None), MagicLink.expires_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    pruned = result.rowcount or 0
    if pruned:
        logger.info("magic_links_pruned count=%s cutoff=%s", pruned, cutoff.isoformat())
    return pruned


@celery_app.task(name="magic_links.prune_expired")
def prune_expired_magic_links_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        pruned_count = prune_expired_magic_links(db=db)
        return {"pruned": pruned_count}
    finally:
        db.close()
