"""
Database initialization and session management.
"""

from collections.abc import Generator
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlmodel import SQLModel

from travel_ledger.core.config import DATABASE_PATH, get_engine_url
from travel_ledger.infrastructure.database.models import (
    AccountRow,
    AppSettingsRow,
    AuditLogRow,
    JournalLedgerRow,
    JournalVoucherRow,
    SequenceCounterRow,
    SourceRecordRow,
)


def create_db_engine(url: str, **kwargs) -> Engine:
    if "sqlite" in url:
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        return create_engine(url, echo=False, connect_args=connect_args, **kwargs)
    return create_engine(url, echo=False, **kwargs)


DATABASE_URL = get_engine_url()

engine = create_db_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency - Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """Dependency - session factory for components that own their transactions."""
    return SessionLocal


def init_db(bind: Engine | None = None) -> None:
    """Initialize database - create all tables."""
    bind = bind or engine
    if bind.url.get_backend_name() == "sqlite" and bind.url.database not in (None, "", ":memory:"):
        Path(bind.url.database).parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(bind=bind)


# (id, code, name, type, parent id, is leaf)
DEFAULT_ACCOUNTS = [
    ("1", "1", "Assets", "asset", None, False),
    ("1-1", "1-1", "Cash and banks", "asset", "1", False),
    ("1-1-1", "1-1-1", "Main cash box", "asset", "1-1", True),
    ("1-1-2", "1-1-2", "Bank account", "asset", "1-1", True),
    ("1-2", "1-2", "Receivables", "asset", "1", False),
    ("1-2-1", "1-2-1", "Clients receivable", "asset", "1-2", True),
    ("1-2-2", "1-2-2", "Partners receivable", "asset", "1-2", True),
    ("1-3", "1-3", "Clearing", "asset", "1", True),
    ("2", "2", "Liabilities", "liability", None, False),
    ("2-1", "2-1", "Suppliers payable", "liability", "2", True),
    ("2-2", "2-2", "Partners payable", "liability", "2", True),
    ("3", "3", "Equity", "equity", None, False),
    ("3-1", "3-1", "Owner capital", "equity", "3", True),
    ("3-2", "3-2", "Retained earnings", "equity", "3", True),
    ("4", "4", "Revenue", "revenue", None, False),
    ("4-1", "4-1", "Service revenue", "revenue", "4", False),
    ("4-1-1", "4-1-1", "Ticket revenue", "revenue", "4-1", True),
    ("4-1-2", "4-1-2", "Visa revenue", "revenue", "4-1", True),
    ("4-1-3", "4-1-3", "Subscription revenue", "revenue", "4-1", True),
    ("4-1-4", "4-1-4", "Segment revenue", "revenue", "4-1", True),
    ("4-1-5", "4-1-5", "Profit distribution revenue", "revenue", "4-1", True),
    ("4-2", "4-2", "Other revenue", "revenue", "4", True),
    ("5", "5", "Expenses", "expense", None, False),
    ("5-1", "5-1", "Cost of services", "expense", "5", False),
    ("5-1-1", "5-1-1", "Ticket cost", "expense", "5-1", True),
    ("5-1-2", "5-1-2", "Visa cost", "expense", "5-1", True),
    ("5-1-3", "5-1-3", "Subscription cost", "expense", "5-1", True),
    ("5-1-4", "5-1-4", "Partner share cost", "expense", "5-1", True),
    ("5-2", "5-2", "Operating expenses", "expense", "5", False),
    ("5-2-1", "5-2-1", "Salaries", "expense", "5-2", True),
    ("5-2-2", "5-2-2", "Rent", "expense", "5-2", True),
    ("5-2-3", "5-2-3", "Utilities", "expense", "5-2", True),
    ("5-2-4", "5-2-4", "Marketing", "expense", "5-2", True),
    ("5-2-9", "5-2-9", "General operating", "expense", "5-2", True),
]

DEFAULT_FINANCE_ACCOUNTS = {
    "receivableAccountId": "1-2-1",
    "payableAccountId": "2-1",
    "defaultCashId": "1-1-1",
    "defaultBankId": "1-1-2",
    "clearingAccountId": "1-3",
    "generalRevenueId": "4-2",
    "generalExpenseId": "5-2-9",
    "preventDirectCashRevenue": True,
    "revenueMap": {
        "tickets": "4-1-1",
        "visas": "4-1-2",
        "subscriptions": "4-1-3",
        "segments": "4-1-4",
        "profit_distribution": "4-1-5",
        "other": "4-2",
    },
    "expenseMap": {
        "tickets": "5-1-1",
        "cost_tickets": "5-1-1",
        "visas": "5-1-2",
        "cost_visas": "5-1-2",
        "subscriptions": "5-1-3",
        "partners": "5-1-4",
        "operating": "5-2-9",
        "operating_salaries": "5-2-1",
        "operating_rent": "5-2-2",
        "operating_utilities": "5-2-3",
        "marketing": "5-2-4",
    },
}


def seed_default_accounts(db: Session) -> int:
    """Seed the default travel-agency chart of accounts. Existing ids are kept."""
    existing = {row_id for (row_id,) in db.query(AccountRow.id).all()}
    created = 0
    for account_id, code, name, acc_type, parent, is_leaf in DEFAULT_ACCOUNTS:
        if account_id in existing:
            continue
        db.add(
            AccountRow(
                id=account_id,
                code=code,
                name=name,
                account_type=acc_type,
                parent_id=parent,
                is_leaf=is_leaf,
            )
        )
        created += 1
    db.commit()
    return created


def seed_default_finance_accounts(db: Session) -> bool:
    """Store the default finance account map unless one is configured."""
    row = db.get(AppSettingsRow, "app_settings")
    if row is not None and row.finance_accounts:
        return False
    if row is None:
        row = AppSettingsRow(key="app_settings")
    row.finance_accounts = dict(DEFAULT_FINANCE_ACCOUNTS)
    db.add(row)
    db.commit()
    return True


if __name__ == "__main__":
    Path(DATABASE_PATH).parent.mkdir(parents=True, exist_ok=True)
    init_db()
    print("Database initialized successfully!")
