"""
Domain Services - sequence allocation, journal posting, voucher lifecycle
and finance account resolution.
"""

import logging
import random
import threading
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any

from .entities import Account, FinanceAccountMap, JournalVoucher, SequenceCounter
from .exceptions import (
    AccountsNotFoundError,
    InvalidJournalLineError,
    InvalidSequenceSettingsError,
    InvalidVoucherStateError,
    NonPostableAccountError,
    SequenceContention,
    SequenceTransactionFailure,
    UnbalancedEntryError,
    UnmappedAccountError,
    VoucherNotFoundError,
)
from .sequences import (
    SEQUENCE_CATALOGUE,
    format_voucher_number,
    normalize_type_key,
    validate_pad_width,
)
from .value_objects import ZERO, JournalLine, as_utc, utc_now

logger = logging.getLogger(__name__)


class ISequenceStore(ABC):
    """Persisted counters. Every write commits on its own."""

    @abstractmethod
    def load(self, type_key: str) -> SequenceCounter | None:
        ...

    @abstractmethod
    def apply(
        self,
        type_key: str,
        mutate: Callable[[SequenceCounter | None], SequenceCounter],
    ) -> SequenceCounter:
        """
        Lock the counter, write ``mutate(current)`` and commit atomically.
        ``current`` is None for a counter that does not exist yet. Raise
        SequenceContention when the write could not be applied.
        """

    @abstractmethod
    def list_all(self) -> list[SequenceCounter]:
        ...


class IAccountRepository(ABC):

    @abstractmethod
    def get_many(self, account_ids: Iterable[str]) -> dict[str, Account]:
        ...

    @abstractmethod
    def list_accounts(self, leaf_only: bool = False) -> list[Account]:
        ...


class IVoucherRepository(ABC):

    @abstractmethod
    def add(self, voucher: JournalVoucher) -> JournalVoucher:
        """Persist the voucher and its ledger lines in one transaction."""

    @abstractmethod
    def get(self, voucher_id: str) -> JournalVoucher | None:
        ...

    @abstractmethod
    def save_state(self, voucher: JournalVoucher) -> JournalVoucher:
        """Persist deletion flags, cascading to ledger lines and the source record."""

    @abstractmethod
    def purge(self, voucher: JournalVoucher) -> None:
        """Physically remove the voucher, its ledger lines and the source link."""


class ISettingsRepository(ABC):

    @abstractmethod
    def load_finance_settings(self) -> dict[str, Any] | None:
        ...

    @abstractmethod
    def save_finance_settings(self, settings: dict[str, Any]) -> None:
        ...


class SequenceAllocator:
    """
    Hands out voucher numbers such as ``VS-00042``.

    Each call is one locked read-modify-write of a single counter row;
    contention that still gets through is retried, never returned as a
    duplicate. Counters of different type keys never contend with each other.
    """

    def __init__(
        self,
        store: ISequenceStore,
        max_retries: int = 10,
        backoff_seconds: float = 0.005,
    ):
        self.store = store
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds

    def allocate(self, type_key_raw: str) -> str:
        resolved = normalize_type_key(type_key_raw)
        counter = self._transact(resolved.type_key, lambda current: current.advance())
        logger.debug(
            "sequence_allocated",
            extra={"type_key": counter.type_key, "value": counter.counter_value},
        )
        return counter.formatted

    def peek(self, type_key_raw: str) -> str:
        """Number the next ``allocate`` would return, without consuming it."""
        resolved = normalize_type_key(type_key_raw)
        current = self.store.load(resolved.type_key) or self._fresh(resolved.type_key)
        return format_voucher_number(current.prefix, current.counter_value + 1, current.pad_width)

    def set_sequence(
        self,
        type_key_raw: str,
        label: str | None = None,
        prefix: str | None = None,
        value: int | None = None,
        pad_width: int | None = None,
    ) -> SequenceCounter:
        if value is not None and value < 0:
            raise InvalidSequenceSettingsError("Counter value must be non-negative", ctx={"value": value})
        if pad_width is not None:
            validate_pad_width(pad_width)
        if prefix is not None and not prefix.strip():
            raise InvalidSequenceSettingsError("Prefix must not be empty")

        resolved = normalize_type_key(type_key_raw)

        def apply(current: SequenceCounter) -> SequenceCounter:
            if value is not None and value < current.counter_value:
                logger.warning(
                    "sequence_counter_lowered",
                    extra={
                        "type_key": current.type_key,
                        "from_value": current.counter_value,
                        "to_value": value,
                    },
                )
            return current.reconfigure(label=label, prefix=prefix, value=value, pad_width=pad_width)

        counter = self._transact(resolved.type_key, apply)
        logger.info(
            "sequence_updated",
            extra={"type_key": counter.type_key, "prefix": counter.prefix, "value": counter.counter_value},
        )
        return counter

    def list_sequences(self) -> list[SequenceCounter]:
        """Stored counters merged with defaults for never-used canonical keys."""
        stored = {c.type_key: c for c in self.store.list_all()}
        result = [stored.pop(key.value, None) or self._fresh(key.value) for key in SEQUENCE_CATALOGUE]
        result.extend(stored[key] for key in sorted(stored))
        return result

    def _fresh(self, type_key: str) -> SequenceCounter:
        defaults = normalize_type_key(type_key).defaults
        return SequenceCounter(
            type_key=type_key,
            label=defaults.label,
            prefix=defaults.prefix,
            counter_value=0,
            pad_width=defaults.pad_width,
        )

    def _transact(
        self,
        type_key: str,
        mutate: Callable[[SequenceCounter], SequenceCounter],
    ) -> SequenceCounter:
        last_error: SequenceContention | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return self.store.apply(
                    type_key,
                    lambda current: mutate(current or self._fresh(type_key)),
                )
            except SequenceContention as exc:
                last_error = exc
                logger.debug(
                    "sequence_contention_retry",
                    extra={"type_key": type_key, "attempt": attempt},
                )
                if self.backoff_seconds:
                    time.sleep(random.uniform(0, self.backoff_seconds * attempt))

        logger.error(
            "sequence_transaction_failed",
            extra={"type_key": type_key, "attempts": self.max_retries},
        )
        raise SequenceTransactionFailure(type_key, self.max_retries) from last_error


class ChartOfAccountsLookup:
    """Verifies posting targets against the chart of accounts."""

    def __init__(self, account_repo: IAccountRepository):
        self.account_repo = account_repo

    def ensure_postable(self, account_ids: Sequence[str]) -> dict[str, Account]:
        distinct = list(dict.fromkeys(account_ids))
        found = self.account_repo.get_many(distinct)

        missing = [account_id for account_id in distinct if account_id not in found]
        if missing:
            logger.warning("accounts_not_found", extra={"missing_account_ids": missing})
            raise AccountsNotFoundError(missing)

        non_leaf = [account_id for account_id in distinct if not found[account_id].can_post()]
        if non_leaf:
            raise NonPostableAccountError(non_leaf)
        return found


class JournalPostingService:
    """
    Turns a set of journal lines into a persisted voucher.

    The voucher number is allocated by the caller beforehand; a failed post
    leaves that number unused. Lines are never corrected here.
    """

    def __init__(
        self,
        account_lookup: ChartOfAccountsLookup,
        voucher_repo: IVoucherRepository,
        tolerance: Decimal = Decimal("0.0001"),
        default_currency: str = "USD",
    ):
        self.account_lookup = account_lookup
        self.voucher_repo = voucher_repo
        self.tolerance = tolerance
        self.default_currency = default_currency

    def post(
        self,
        source_type: str,
        source_id: str | None,
        voucher_date: datetime | None,
        lines: Sequence[JournalLine],
        invoice_number: str,
        *,
        created_by: str = "system",
        officer: str | None = None,
        notes: str = "",
        meta: dict[str, Any] | None = None,
        direct_cash_revenue: bool = False,
        finance_map: FinanceAccountMap | None = None,
    ) -> str:
        if not source_type or not source_type.strip():
            raise InvalidJournalLineError("Source type is required")
        if not invoice_number:
            raise InvalidJournalLineError("An allocated voucher number is required")

        self.validate_lines(lines)
        self.account_lookup.ensure_postable([line.account_id for line in lines])
        self.check_balance(lines)

        currency = next((line.currency for line in lines if line.currency), self.default_currency)
        resolved_source_id = source_id or f"txn-{uuid.uuid4().hex}"
        stored_lines = [
            line if line.currency else _with_currency(line, currency)
            for line in lines
        ]
        categories = {}
        if finance_map is not None:
            categories = {line.account_id: finance_map.categorize(line.account_id) for line in lines}

        meta = dict(meta or {})
        if direct_cash_revenue:
            meta["directCash"] = True

        voucher = JournalVoucher(
            invoice_number=invoice_number,
            voucher_date=as_utc(voucher_date) or utc_now(),
            currency=currency,
            source_type=source_type,
            source_id=resolved_source_id,
            created_by=created_by,
            officer=officer or created_by,
            lines=stored_lines,
            notes=notes,
            direct_cash_revenue=direct_cash_revenue,
            meta=meta,
            original_data={"sourceType": source_type, "sourceId": resolved_source_id, "meta": meta or None},
            account_categories=categories,
        )
        saved = self.voucher_repo.add(voucher)
        logger.info(
            "journal_voucher_posted",
            extra={
                "voucher_id": saved.id,
                "invoice_number": saved.invoice_number,
                "source_type": source_type,
                "source_id": resolved_source_id,
                "total": str(saved.total_debit),
            },
        )
        return saved.id

    @staticmethod
    def validate_lines(lines: Sequence[JournalLine]) -> None:
        if not lines:
            raise InvalidJournalLineError("No entries provided")

        for index, line in enumerate(lines):
            ctx = {"line": index, "account_id": line.account_id}
            if not line.account_id or not str(line.account_id).strip():
                raise InvalidJournalLineError("Every entry needs an account id", ctx=ctx)
            if line.debit < 0 or line.credit < 0:
                raise InvalidJournalLineError("Debit and credit must be non-negative", ctx=ctx)
            if (line.debit > 0) == (line.credit > 0):
                raise InvalidJournalLineError(
                    "Exactly one of debit or credit must be non-zero", ctx=ctx
                )

    def check_balance(self, lines: Sequence[JournalLine]) -> None:
        total_debit = sum((line.debit for line in lines), ZERO)
        total_credit = sum((line.credit for line in lines), ZERO)
        if abs(total_debit - total_credit) > self.tolerance:
            raise UnbalancedEntryError(total_debit, total_credit)


def _with_currency(line: JournalLine, currency: str) -> JournalLine:
    return JournalLine(
        account_id=line.account_id,
        debit=line.debit,
        credit=line.credit,
        currency=currency,
        description=line.description,
        relation_id=line.relation_id,
        company_id=line.company_id,
    )


class VoucherLifecycleService:
    """
    active -> soft_deleted -> active (restore) | purged (permanent delete).

    Soft delete flags the voucher and everything hanging off it; it does not
    post an offsetting entry.
    """

    def __init__(self, voucher_repo: IVoucherRepository):
        self.voucher_repo = voucher_repo

    def _require(self, voucher_id: str) -> JournalVoucher:
        voucher = self.voucher_repo.get(voucher_id)
        if voucher is None:
            raise VoucherNotFoundError(voucher_id)
        return voucher

    def soft_delete(self, voucher_id: str, actor: str) -> JournalVoucher:
        voucher = self._require(voucher_id)
        if voucher.is_deleted:
            logger.debug("voucher_already_deleted", extra={"voucher_id": voucher_id})
            return voucher

        deleted = self.voucher_repo.save_state(voucher.soft_delete(actor))
        logger.info(
            "voucher_soft_deleted",
            extra={"voucher_id": voucher_id, "invoice_number": voucher.invoice_number, "actor": actor},
        )
        return deleted

    def restore(self, voucher_id: str, actor: str) -> JournalVoucher:
        voucher = self._require(voucher_id)
        if not voucher.is_deleted:
            return voucher

        restored = self.voucher_repo.save_state(voucher.restore(actor))
        logger.info("voucher_restored", extra={"voucher_id": voucher_id, "actor": actor})
        return restored

    def permanent_delete(self, voucher_id: str, actor: str) -> JournalVoucher:
        voucher = self._require(voucher_id)
        if not voucher.is_deleted:
            raise InvalidVoucherStateError(
                "Only soft-deleted vouchers can be permanently deleted",
                ctx={"voucher_id": voucher_id, "state": voucher.state.value},
            )

        self.voucher_repo.purge(voucher)
        logger.warning(
            "voucher_permanently_deleted",
            extra={"voucher_id": voucher_id, "invoice_number": voucher.invoice_number, "actor": actor},
        )
        return voucher


class FinanceAccountMapResolver:
    """
    Short-lived in-memory cache over the finance account settings.
    Staleness after an edit elsewhere is bounded by ``ttl_seconds``.
    """

    def __init__(
        self,
        settings_repo: ISettingsRepository,
        ttl_seconds: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings_repo = settings_repo
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: FinanceAccountMap | None = None
        self._loaded_at = 0.0

    def get_map(self) -> FinanceAccountMap:
        with self._lock:
            now = self._clock()
            if self._cached is not None and now - self._loaded_at < self.ttl_seconds:
                return self._cached

            self._cached = FinanceAccountMap.from_settings(self.settings_repo.load_finance_settings())
            self._loaded_at = now
            logger.debug("finance_map_refreshed")
            return self._cached

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None

    def update_map(self, finance_map: FinanceAccountMap) -> FinanceAccountMap:
        self.settings_repo.save_finance_settings(finance_map.to_settings())
        self.invalidate()
        logger.info("finance_map_updated")
        return self.get_map()

    def resolve_revenue_account(self, service_kind: str) -> str:
        fm = self.get_map()
        account_id = fm.revenue_map.get(service_kind) or fm.general_revenue_id
        if not account_id:
            raise UnmappedAccountError(f"revenueMap.{service_kind}")
        return account_id

    def resolve_expense_account(self, cost_kind: str) -> str:
        fm = self.get_map()
        account_id = fm.expense_map.get(cost_kind) or fm.general_expense_id
        if not account_id:
            raise UnmappedAccountError(f"expenseMap.{cost_kind}")
        return account_id

    def resolve_payable_account(self) -> str:
        fm = self.get_map()
        if not fm.payable_account_id:
            raise UnmappedAccountError("payableAccountId")
        return fm.payable_account_id

    def resolve_revenue_debit_account(self) -> tuple[str, bool]:
        """
        Account to debit when recognising revenue.

        Returns ``(account_id, direct_cash)``. The receivable account is the
        normal path; cash or bank is used only when no receivable is mapped
        and policy allows direct cash revenue, and is flagged as such.
        """
        fm = self.get_map()
        if fm.receivable_account_id:
            return fm.receivable_account_id, False
        if not fm.prevent_direct_cash_revenue:
            fallback = fm.default_cash_id or fm.default_bank_id
            if fallback:
                return fallback, True
        raise UnmappedAccountError("receivableAccountId")
