# agrimarket/services/admin/audit.py
from __future__ import annotations

from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from agrimarket.models.enums import AdminActionType
from agrimarket.tables import AdminAction


class AuditLog:
    """
    Append-only admin action log.
    Writes happen after the main change is committed; a failed write is
    logged and dropped so it never undoes the admin's change.
    """

    def __init__(self, session):
        self.session = session

    def record(
        self,
        admin_id: int,
        action_type: AdminActionType,
        target_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AdminAction]:
        entry = AdminAction(
            admin_id=admin_id,
            action_type=action_type.value,
            target_id=target_id,
            details=details or {},
        )
        try:
            self.session.add(entry)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            current_app.logger.warning(
                "Audit log write failed (%s, target=%s): %s", action_type.value, target_id, e
            )
            return None
        return entry
