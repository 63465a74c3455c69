"""
Pytest configuration and fixtures.
"""

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from travel_ledger.application.posting_flows import LedgerFlows
from travel_ledger.core.security import Actor, UserRole
from travel_ledger.domain.entities import FinanceAccountMap
from travel_ledger.domain.services import (
    ChartOfAccountsLookup,
    FinanceAccountMapResolver,
    JournalPostingService,
    SequenceAllocator,
    VoucherLifecycleService,
)
from travel_ledger.domain.value_objects import JournalLine
from travel_ledger.infrastructure.audit import SqlAuditLogWriter
from travel_ledger.infrastructure.database import (
    DEFAULT_FINANCE_ACCOUNTS,
    init_db,
    seed_default_accounts,
    seed_default_finance_accounts,
)
from travel_ledger.infrastructure.database.repositories import (
    SqlAccountRepository,
    SqlSequenceStore,
    SqlSettingsRepository,
    SqlSourceRecordRepository,
    SqlVoucherRepository,
)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    seed_default_accounts(session)
    seed_default_finance_accounts(session)
    yield session
    session.close()


@pytest.fixture
def allocator(session_factory) -> SequenceAllocator:
    return SequenceAllocator(SqlSequenceStore(session_factory), backoff_seconds=0)


@pytest.fixture
def voucher_repo(db) -> SqlVoucherRepository:
    return SqlVoucherRepository(db)


@pytest.fixture
def posting(db, voucher_repo) -> JournalPostingService:
    return JournalPostingService(ChartOfAccountsLookup(SqlAccountRepository(db)), voucher_repo)


@pytest.fixture
def lifecycle(voucher_repo) -> VoucherLifecycleService:
    return VoucherLifecycleService(voucher_repo)


@pytest.fixture
def resolver(db, session_factory) -> FinanceAccountMapResolver:
    return FinanceAccountMapResolver(SqlSettingsRepository(session_factory))


@pytest.fixture
def flows(db, allocator, posting, lifecycle, resolver, session_factory) -> LedgerFlows:
    return LedgerFlows(
        allocator=allocator,
        posting=posting,
        lifecycle=lifecycle,
        resolver=resolver,
        source_records=SqlSourceRecordRepository(db),
        audit=SqlAuditLogWriter(session_factory),
    )


@pytest.fixture
def finance_map() -> FinanceAccountMap:
    return FinanceAccountMap.from_settings(DEFAULT_FINANCE_ACCOUNTS)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="u-admin", user_name="Alice Admin", role=UserRole.ADMIN)


@pytest.fixture
def accountant() -> Actor:
    return Actor(user_id="u-acc", user_name="Omar Accountant", role=UserRole.ACCOUNTANT)


@pytest.fixture
def balanced_lines() -> list[JournalLine]:
    return [
        JournalLine.debit_line("1-2-1", Decimal("250.00"), description="Ticket sale", relation_id="client-7"),
        JournalLine.credit_line("4-1-1", Decimal("250.00"), description="Ticket sale"),
    ]
