"""
Audit trail persistence.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from travel_ledger.core.security import AuditEntry
from travel_ledger.infrastructure.database.models import AuditLogRow

logger = logging.getLogger(__name__)


class SqlAuditLogWriter:
    """
    Writes audit entries in their own transaction. A failed write is logged
    and dropped; the business operation it describes has already committed.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def write(self, entry: AuditEntry) -> None:
        try:
            with self.session_factory() as db:
                db.add(
                    AuditLogRow(
                        user_id=entry.user_id,
                        user_name=entry.user_name,
                        action=entry.action.value,
                        target_type=entry.target_type,
                        target_id=entry.target_id,
                        description=entry.description,
                        created_at=entry.created_at,
                    )
                )
                db.commit()
        except SQLAlchemyError:
            logger.exception(
                "audit_write_failed",
                extra={"action": entry.action.value, "target_id": entry.target_id},
            )
