"""
Infrastructure - SQLModel database models.
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from travel_ledger.domain.value_objects import utc_now


def _new_id() -> str:
    return uuid4().hex


class SequenceCounterRow(SQLModel, table=True):
    """Counter per sequence type key. Rows are never deleted."""

    __tablename__ = "sequence_counters"

    type_key: str = Field(primary_key=True)
    label: str
    prefix: str
    counter_value: int = 0
    pad_width: int = 5
    version: int = 0
    updated_at: datetime = Field(default_factory=utc_now)


class AccountRow(SQLModel, table=True):
    """Chart of accounts node."""

    __tablename__ = "chart_of_accounts"

    id: str = Field(default_factory=_new_id, primary_key=True)
    code: str = Field(unique=True, index=True)
    name: str
    account_type: str
    parent_id: str | None = Field(default=None, foreign_key="chart_of_accounts.id", index=True)
    is_leaf: bool = True
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class JournalVoucherRow(SQLModel, table=True):
    """Posted journal voucher with denormalised entries for listing."""

    __tablename__ = "journal_vouchers"

    id: str = Field(default_factory=_new_id, primary_key=True)
    invoice_number: str = Field(unique=True, index=True)
    voucher_type: str
    voucher_date: datetime = Field(index=True)
    currency: str
    source_type: str = Field(index=True)
    source_id: str = Field(index=True)
    notes: str = ""
    created_by: str
    officer: str = "system"

    debit_entries: list = Field(default_factory=list, sa_column=Column(JSON))
    credit_entries: list = Field(default_factory=list, sa_column=Column(JSON))
    entries: list = Field(default_factory=list, sa_column=Column(JSON))
    meta: dict = Field(default_factory=dict, sa_column=Column(JSON))
    original_data: dict = Field(default_factory=dict, sa_column=Column(JSON))

    direct_cash_revenue: bool = False
    total_amount: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=4)

    is_deleted: bool = Field(default=False, index=True)
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    restored_at: datetime | None = None
    restored_by: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class JournalLedgerRow(SQLModel, table=True):
    """One row per voucher entry; mirrors the voucher's deletion flags."""

    __tablename__ = "journal_ledger"

    id: str = Field(default_factory=_new_id, primary_key=True)
    voucher_id: str = Field(foreign_key="journal_vouchers.id", index=True)
    line_number: int
    account_id: str = Field(index=True)
    account_category: str = "other"
    debit: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=4)
    credit: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=4)
    amount: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=4)
    currency: str
    description: str = ""
    relation_id: str | None = Field(default=None, index=True)
    company_id: str | None = None

    is_deleted: bool = Field(default=False, index=True)
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    restored_at: datetime | None = None
    restored_by: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class SourceRecordRow(SQLModel, table=True):
    """Business record (booking, visa, remittance, ...) a voucher was posted for."""

    __tablename__ = "source_records"
    __table_args__ = (UniqueConstraint("source_type", "source_id", name="uq_source_record"),)

    id: str = Field(default_factory=_new_id, primary_key=True)
    source_type: str = Field(index=True)
    source_id: str = Field(index=True)
    invoice_number: str | None = None
    journal_voucher_id: str | None = Field(default=None, index=True)
    is_deleted: bool = False
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class AppSettingsRow(SQLModel, table=True):
    """Singleton settings document."""

    __tablename__ = "app_settings"

    key: str = Field(default="app_settings", primary_key=True)
    finance_accounts: dict = Field(default_factory=dict, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=utc_now)


class AuditLogRow(SQLModel, table=True):
    """Audit trail written by the business flows."""

    __tablename__ = "audit_logs"

    id: str = Field(default_factory=_new_id, primary_key=True)
    user_id: str = Field(index=True)
    user_name: str
    action: str = Field(index=True)  # CREATE, UPDATE, DELETE, APPROVE
    target_type: str
    target_id: str = Field(index=True)
    description: str = ""
    created_at: datetime = Field(default_factory=utc_now, index=True)
