"""
FastAPI dependencies - wiring of repositories and services per request.
"""

import threading

from fastapi import Depends, Header
from sqlalchemy.orm import Session, sessionmaker

from travel_ledger.application.posting_flows import LedgerFlows
from travel_ledger.core.config import (
    BALANCE_TOLERANCE,
    DEFAULT_LEDGER_CURRENCY,
    FINANCE_MAP_CACHE_TTL_SECONDS,
    SEQUENCE_MAX_RETRIES,
)
from travel_ledger.core.security import Actor, Permission, RBACService, UserRole
from travel_ledger.domain.exceptions import InvalidInput
from travel_ledger.domain.services import (
    ChartOfAccountsLookup,
    FinanceAccountMapResolver,
    JournalPostingService,
    SequenceAllocator,
    VoucherLifecycleService,
)
from travel_ledger.infrastructure.audit import SqlAuditLogWriter
from travel_ledger.infrastructure.database import get_db, get_session_factory
from travel_ledger.infrastructure.database.repositories import (
    SqlAccountRepository,
    SqlSequenceStore,
    SqlSettingsRepository,
    SqlSourceRecordRepository,
    SqlVoucherRepository,
)

rbac = RBACService()

_resolver: FinanceAccountMapResolver | None = None
_resolver_lock = threading.Lock()


def get_actor(
    x_user_id: str = Header("anonymous"),
    x_user_name: str | None = Header(None),
    x_user_role: str = Header(UserRole.VIEWER.value),
) -> Actor:
    try:
        role = UserRole(x_user_role.upper())
    except ValueError:
        raise InvalidInput(f"Unknown role {x_user_role}", ctx={"role": x_user_role}) from None
    return Actor(user_id=x_user_id, user_name=x_user_name or x_user_id, role=role)


def require(permission: Permission):
    def _check(actor: Actor = Depends(get_actor)) -> Actor:
        rbac.require(actor, permission)
        return actor

    return _check


def get_sequence_allocator(session_factory: sessionmaker = Depends(get_session_factory)) -> SequenceAllocator:
    return SequenceAllocator(SqlSequenceStore(session_factory), max_retries=SEQUENCE_MAX_RETRIES)


def get_finance_resolver(session_factory: sessionmaker = Depends(get_session_factory)) -> FinanceAccountMapResolver:
    """Process-wide resolver so its cache survives between requests."""
    global _resolver
    with _resolver_lock:
        if _resolver is None or _resolver.settings_repo.session_factory is not session_factory:
            _resolver = FinanceAccountMapResolver(
                SqlSettingsRepository(session_factory),
                ttl_seconds=FINANCE_MAP_CACHE_TTL_SECONDS,
            )
        return _resolver


def get_audit_writer(session_factory: sessionmaker = Depends(get_session_factory)) -> SqlAuditLogWriter:
    return SqlAuditLogWriter(session_factory)


def get_flows(
    db: Session = Depends(get_db),
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
    resolver: FinanceAccountMapResolver = Depends(get_finance_resolver),
    audit: SqlAuditLogWriter = Depends(get_audit_writer),
) -> LedgerFlows:
    voucher_repo = SqlVoucherRepository(db)
    posting = JournalPostingService(
        ChartOfAccountsLookup(SqlAccountRepository(db)),
        voucher_repo,
        tolerance=BALANCE_TOLERANCE,
        default_currency=DEFAULT_LEDGER_CURRENCY,
    )
    return LedgerFlows(
        allocator=allocator,
        posting=posting,
        lifecycle=VoucherLifecycleService(voucher_repo),
        resolver=resolver,
        source_records=SqlSourceRecordRepository(db),
        audit=audit,
        rbac=rbac,
    )
