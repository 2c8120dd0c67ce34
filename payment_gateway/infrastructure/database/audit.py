"""Durable audit sink backed by the audit_log table"""

import logging

from sqlalchemy.orm import Session

from payment_gateway.domain.models import AuditEvent
from payment_gateway.infrastructure.database.repositories import AuditRepository


class DatabaseAuditSink:
    """Synchronous durable write: the event is committed before the call returns"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AuditRepository(db)

    def record(self, event: AuditEvent) -> str:
        """
        Insert and commit an audit event.

        Raises:
            SQLAlchemyError: On write failure, after rolling back
        """
        try:
            self.repo.append(event)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logging.error("Audit write failed", extra={"event_id": str(event.event_id), "action": event.action})
            raise
        return str(event.event_id)
