# marketboard/services/audit.py
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.audit import AdminActionLog

logger = logging.getLogger(__name__)


def log_admin_action(
    db: Session,
    admin_id: int | None,
    action_type: str,
    target_type: str,
    target_id: int,
    details: dict[str, Any] | None = None,
) -> AdminActionLog | None:
    """Append an audit row after the primary change has been committed.

    Best effort: a failure here is logged and swallowed, the moderation
    change it describes stays applied.
    """
    if admin_id is None:
        return None
    row = AdminActionLog(
        admin_id=admin_id,
        action_type=action_type,
        target_type=target_type,
        target_id=target_id,
        details=details or None,
    )
    try:
        db.add(row)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "AUDIT LOG WRITE FAILED action=%s target=%s#%s admin=%s",
            action_type, target_type, target_id, admin_id,
        )
        return None
    return row


def recent_actions(db: Session, limit: int = 50) -> list[AdminActionLog]:
    return db.execute(
        select(AdminActionLog).order_by(AdminActionLog.created_at.desc(), AdminActionLog.id.desc()).limit(limit)
    ).scalars().all()
