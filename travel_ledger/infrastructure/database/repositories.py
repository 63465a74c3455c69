"""
SQL implementations of the domain repositories.
"""

from collections.abc import Callable, Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from travel_ledger.domain.entities import Account, JournalVoucher, SequenceCounter
from travel_ledger.domain.exceptions import DuplicateVoucherNumberError, SequenceContention
from travel_ledger.domain.services import (
    IAccountRepository,
    ISequenceStore,
    ISettingsRepository,
    IVoucherRepository,
)
from travel_ledger.domain.value_objects import AccountCategory, AccountType, JournalLine, as_utc, utc_now
from travel_ledger.infrastructure.database.models import (
    AccountRow,
    AppSettingsRow,
    JournalLedgerRow,
    JournalVoucherRow,
    SequenceCounterRow,
    SourceRecordRow,
)

SETTINGS_KEY = "app_settings"


def _counter_from_row(row: SequenceCounterRow) -> SequenceCounter:
    return SequenceCounter(
        type_key=row.type_key,
        label=row.label,
        prefix=row.prefix,
        counter_value=row.counter_value,
        pad_width=row.pad_width,
        updated_at=as_utc(row.updated_at),
        version=row.version,
    )


def _counter_to_row(counter: SequenceCounter) -> SequenceCounterRow:
    return SequenceCounterRow(
        type_key=counter.type_key,
        label=counter.label,
        prefix=counter.prefix,
        counter_value=counter.counter_value,
        pad_width=counter.pad_width,
        version=counter.version,
        updated_at=counter.updated_at,
    )


def _begin_write(db: Session) -> None:
    """SQLite ignores FOR UPDATE, so take its write lock before reading."""
    connection = db.connection()
    if connection.dialect.name != "sqlite":
        return
    if not connection.connection.dbapi_connection.in_transaction:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


class SqlSequenceStore(ISequenceStore):
    """
    Each allocation reads, mutates and writes its counter row inside one
    transaction holding the row lock (``SELECT ... FOR UPDATE``; on SQLite
    the database write lock via ``BEGIN IMMEDIATE``). The write is still
    compare-and-set on ``version``, so a backend that ignores the lock
    surfaces a lost race as SequenceContention instead of a duplicate.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def load(self, type_key: str) -> SequenceCounter | None:
        with self.session_factory() as db:
            row = db.execute(
                select(SequenceCounterRow).where(SequenceCounterRow.type_key == type_key)
            ).scalar_one_or_none()
            return _counter_from_row(row) if row else None

    def apply(
        self,
        type_key: str,
        mutate: Callable[[SequenceCounter | None], SequenceCounter],
    ) -> SequenceCounter:
        with self.session_factory() as db:
            try:
                _begin_write(db)
                row = db.execute(
                    select(SequenceCounterRow)
                    .where(SequenceCounterRow.type_key == type_key)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
                current = _counter_from_row(row) if row else None
                updated = mutate(current)
                if current is None:
                    db.add(_counter_to_row(updated))
                    db.flush()
                else:
                    result = db.execute(
                        update(SequenceCounterRow)
                        .where(
                            SequenceCounterRow.type_key == type_key,
                            SequenceCounterRow.version == current.version,
                        )
                        .values(
                            label=updated.label,
                            prefix=updated.prefix,
                            counter_value=updated.counter_value,
                            pad_width=updated.pad_width,
                            version=updated.version,
                            updated_at=updated.updated_at,
                        )
                    )
                    if result.rowcount != 1:
                        db.rollback()
                        raise SequenceContention(
                            f"Counter {type_key} changed concurrently",
                            ctx={"type_key": type_key, "expected_version": current.version},
                        )
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise SequenceContention(
                    f"Counter {type_key} was created concurrently",
                    ctx={"type_key": type_key},
                ) from exc
            except OperationalError as exc:
                db.rollback()
                raise SequenceContention(
                    f"Counter {type_key} is locked",
                    ctx={"type_key": type_key},
                ) from exc
            return updated

    def list_all(self) -> list[SequenceCounter]:
        with self.session_factory() as db:
            rows = db.execute(select(SequenceCounterRow)).scalars().all()
            return [_counter_from_row(row) for row in rows]


def _account_from_row(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        code=row.code,
        name=row.name,
        account_type=AccountType(row.account_type),
        parent_id=row.parent_id,
        is_leaf=row.is_leaf,
        is_active=row.is_active,
    )


class SqlAccountRepository(IAccountRepository):

    def __init__(self, db: Session):
        self.db = db

    def get_many(self, account_ids: Iterable[str]) -> dict[str, Account]:
        ids = list(dict.fromkeys(account_ids))
        if not ids:
            return {}
        rows = self.db.execute(select(AccountRow).where(AccountRow.id.in_(ids))).scalars().all()
        return {row.id: _account_from_row(row) for row in rows}

    def list_accounts(self, leaf_only: bool = False) -> list[Account]:
        query = select(AccountRow).order_by(AccountRow.code)
        if leaf_only:
            query = query.where(AccountRow.is_leaf.is_(True))
        return [_account_from_row(row) for row in self.db.execute(query).scalars().all()]


def _entry_to_json(line: JournalLine, category: AccountCategory | None) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "accountId": line.account_id,
        "debit": str(line.debit),
        "credit": str(line.credit),
        "amount": str(line.amount),
        "currency": line.currency,
        "description": line.description,
        "type": "debit" if line.is_debit else "credit",
        "accountType": (category or AccountCategory.OTHER).value,
    }
    if line.relation_id:
        entry["relationId"] = line.relation_id
    if line.company_id:
        entry["companyId"] = line.company_id
    return entry


def _line_from_json(entry: dict[str, Any]) -> JournalLine:
    return JournalLine(
        account_id=entry["accountId"],
        debit=Decimal(entry.get("debit") or "0"),
        credit=Decimal(entry.get("credit") or "0"),
        currency=entry.get("currency"),
        description=entry.get("description") or "",
        relation_id=entry.get("relationId"),
        company_id=entry.get("companyId"),
    )


def voucher_from_row(row: JournalVoucherRow) -> JournalVoucher:
    entries = row.entries or []
    return JournalVoucher(
        id=row.id,
        invoice_number=row.invoice_number,
        voucher_date=as_utc(row.voucher_date),
        currency=row.currency,
        source_type=row.source_type,
        source_id=row.source_id,
        created_by=row.created_by,
        officer=row.officer,
        lines=[_line_from_json(entry) for entry in entries],
        notes=row.notes,
        direct_cash_revenue=row.direct_cash_revenue,
        meta=dict(row.meta or {}),
        original_data=dict(row.original_data or {}),
        account_categories={
            entry["accountId"]: AccountCategory(entry.get("accountType") or "other")
            for entry in entries
        },
        is_deleted=row.is_deleted,
        deleted_at=as_utc(row.deleted_at),
        deleted_by=row.deleted_by,
        restored_at=as_utc(row.restored_at),
        restored_by=row.restored_by,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


class SqlVoucherRepository(IVoucherRepository):

    def __init__(self, db: Session):
        self.db = db

    def add(self, voucher: JournalVoucher) -> JournalVoucher:
        categories = voucher.account_categories
        self.db.add(
            JournalVoucherRow(
                id=voucher.id,
                invoice_number=voucher.invoice_number,
                voucher_type=voucher.voucher_type,
                voucher_date=voucher.voucher_date,
                currency=voucher.currency,
                source_type=voucher.source_type,
                source_id=voucher.source_id,
                notes=voucher.notes,
                created_by=voucher.created_by,
                officer=voucher.officer,
                debit_entries=voucher.debit_entries,
                credit_entries=voucher.credit_entries,
                entries=[_entry_to_json(line, categories.get(line.account_id)) for line in voucher.lines],
                meta=voucher.meta,
                original_data=voucher.original_data,
                direct_cash_revenue=voucher.direct_cash_revenue,
                total_amount=voucher.total_debit,
                created_at=voucher.created_at,
                updated_at=voucher.updated_at,
            )
        )
        for number, line in enumerate(voucher.lines, start=1):
            self.db.add(
                JournalLedgerRow(
                    voucher_id=voucher.id,
                    line_number=number,
                    account_id=line.account_id,
                    account_category=(categories.get(line.account_id) or AccountCategory.OTHER).value,
                    debit=line.debit,
                    credit=line.credit,
                    amount=line.amount,
                    currency=line.currency or voucher.currency,
                    description=line.description,
                    relation_id=line.relation_id,
                    company_id=line.company_id,
                    created_at=voucher.created_at,
                    updated_at=voucher.updated_at,
                )
            )
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateVoucherNumberError(voucher.invoice_number) from exc
        return voucher

    def get(self, voucher_id: str) -> JournalVoucher | None:
        row = self.db.get(JournalVoucherRow, voucher_id, populate_existing=True)
        return voucher_from_row(row) if row else None

    def list_vouchers(
        self,
        source_type: str | None = None,
        include_deleted: bool = False,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[JournalVoucher]:
        query = select(JournalVoucherRow)
        if source_type:
            query = query.where(JournalVoucherRow.source_type == source_type)
        if not include_deleted:
            query = query.where(JournalVoucherRow.is_deleted.is_(False))
        if start_date:
            query = query.where(JournalVoucherRow.voucher_date >= as_utc(start_date))
        if end_date:
            query = query.where(JournalVoucherRow.voucher_date <= as_utc(end_date))
        query = query.order_by(JournalVoucherRow.voucher_date.desc()).offset(skip).limit(limit)
        return [voucher_from_row(row) for row in self.db.execute(query).scalars().all()]

    def save_state(self, voucher: JournalVoucher) -> JournalVoucher:
        row = self.db.get(JournalVoucherRow, voucher.id)
        row.is_deleted = voucher.is_deleted
        row.deleted_at = voucher.deleted_at
        row.deleted_by = voucher.deleted_by
        row.restored_at = voucher.restored_at
        row.restored_by = voucher.restored_by
        row.updated_at = voucher.updated_at

        self.db.execute(
            update(JournalLedgerRow)
            .where(JournalLedgerRow.voucher_id == voucher.id)
            .values(
                is_deleted=voucher.is_deleted,
                deleted_at=voucher.deleted_at,
                deleted_by=voucher.deleted_by,
                restored_at=voucher.restored_at,
                restored_by=voucher.restored_by,
                updated_at=voucher.updated_at,
            )
        )
        self.db.execute(
            update(SourceRecordRow)
            .where(
                SourceRecordRow.source_type == voucher.source_type,
                SourceRecordRow.source_id == voucher.source_id,
                SourceRecordRow.journal_voucher_id == voucher.id,
            )
            .values(
                is_deleted=voucher.is_deleted,
                deleted_at=voucher.deleted_at,
                deleted_by=voucher.deleted_by,
                updated_at=voucher.updated_at,
            )
        )
        self.db.commit()
        return voucher

    def purge(self, voucher: JournalVoucher) -> None:
        self.db.execute(delete(JournalLedgerRow).where(JournalLedgerRow.voucher_id == voucher.id))
        self.db.execute(delete(JournalVoucherRow).where(JournalVoucherRow.id == voucher.id))
        self.db.execute(
            update(SourceRecordRow)
            .where(SourceRecordRow.journal_voucher_id == voucher.id)
            .values(journal_voucher_id=None, updated_at=utc_now())
        )
        self.db.commit()


class SqlSourceRecordRepository:
    """Links business records to the voucher posted for them."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, source_type: str, source_id: str) -> SourceRecordRow | None:
        return self.db.execute(
            select(SourceRecordRow).where(
                SourceRecordRow.source_type == source_type,
                SourceRecordRow.source_id == source_id,
            )
        ).scalar_one_or_none()

    def link(self, source_type: str, source_id: str, voucher_id: str, invoice_number: str) -> SourceRecordRow:
        record = self.get(source_type, source_id)
        if record is None:
            record = SourceRecordRow(source_type=source_type, source_id=source_id)
        record.journal_voucher_id = voucher_id
        record.invoice_number = invoice_number
        record.is_deleted = False
        record.updated_at = utc_now()
        self.db.add(record)
        self.db.commit()
        return record


class SqlSettingsRepository(ISettingsRepository):
    """The resolver cache outlives requests, so reads open their own session."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def load_finance_settings(self) -> dict[str, Any] | None:
        with self.session_factory() as db:
            row = db.get(AppSettingsRow, SETTINGS_KEY)
            if row is None:
                return None
            return dict(row.finance_accounts or {})

    def save_finance_settings(self, settings: dict[str, Any]) -> None:
        with self.session_factory() as db:
            row = db.get(AppSettingsRow, SETTINGS_KEY) or AppSettingsRow(key=SETTINGS_KEY)
            row.finance_accounts = dict(settings)
            row.updated_at = utc_now()
            db.add(row)
            db.commit()
