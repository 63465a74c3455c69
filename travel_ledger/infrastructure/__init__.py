"""Infrastructure layer."""

from travel_ledger.infrastructure.audit import SqlAuditLogWriter
from travel_ledger.infrastructure.database import SessionLocal, get_db, get_session_factory, init_db
from travel_ledger.infrastructure.database.models import (
    AccountRow,
    AppSettingsRow,
    AuditLogRow,
    JournalLedgerRow,
    JournalVoucherRow,
    SequenceCounterRow,
    SourceRecordRow,
)
from travel_ledger.infrastructure.database.repositories import (
    SqlAccountRepository,
    SqlSequenceStore,
    SqlSettingsRepository,
    SqlSourceRecordRepository,
    SqlVoucherRepository,
)
