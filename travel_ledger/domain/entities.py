"""
Domain Entities - core ledger entities.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from .sequences import DEFAULT_PAD_WIDTH, format_voucher_number
from .value_objects import (
    ZERO,
    AccountCategory,
    AccountType,
    JournalLine,
    VoucherState,
    as_utc,
    utc_now,
)


@dataclass
class SequenceCounter:
    """
    Entity - persisted counter for one sequence type key.
    ``counter_value`` is the last number handed out.
    """
    type_key: str
    label: str
    prefix: str
    counter_value: int = 0
    pad_width: int = DEFAULT_PAD_WIDTH
    updated_at: datetime = field(default_factory=utc_now)
    version: int = 0

    @property
    def formatted(self) -> str:
        return format_voucher_number(self.prefix, self.counter_value, self.pad_width)

    def advance(self) -> "SequenceCounter":
        return replace(
            self,
            counter_value=self.counter_value + 1,
            updated_at=utc_now(),
            version=self.version + 1,
        )

    def reconfigure(
        self,
        label: str | None = None,
        prefix: str | None = None,
        value: int | None = None,
        pad_width: int | None = None,
    ) -> "SequenceCounter":
        return replace(
            self,
            label=self.label if label is None else label,
            prefix=self.prefix if prefix is None else prefix.strip().upper(),
            counter_value=self.counter_value if value is None else value,
            pad_width=self.pad_width if pad_width is None else pad_width,
            updated_at=utc_now(),
            version=self.version + 1,
        )


@dataclass
class Account:
    """
    Entity - chart-of-accounts node. Only leaves receive postings.
    """
    code: str
    name: str
    account_type: AccountType
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    parent_id: str | None = None
    is_leaf: bool = True
    is_active: bool = True

    def can_post(self) -> bool:
        return self.is_leaf


@dataclass
class JournalVoucher:
    """
    Entity - a posted double-entry voucher.
    Entries never change after posting; only the deletion flags move.
    """
    invoice_number: str
    voucher_date: datetime
    currency: str
    source_type: str
    source_id: str
    created_by: str
    lines: list[JournalLine] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    notes: str = ""
    officer: str = "system"
    direct_cash_revenue: bool = False
    meta: dict[str, Any] = field(default_factory=dict)
    original_data: dict[str, Any] = field(default_factory=dict)
    account_categories: dict[str, AccountCategory] = field(default_factory=dict)
    is_deleted: bool = False
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    restored_at: datetime | None = None
    restored_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def voucher_type(self) -> str:
        return f"journal_from_{self.source_type}"

    @property
    def state(self) -> VoucherState:
        return VoucherState.SOFT_DELETED if self.is_deleted else VoucherState.ACTIVE

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @property
    def debit_entries(self) -> list[dict[str, Any]]:
        return [self._entry_dict(line) for line in self.lines if line.debit > 0]

    @property
    def credit_entries(self) -> list[dict[str, Any]]:
        return [self._entry_dict(line) for line in self.lines if line.credit > 0]

    @staticmethod
    def _entry_dict(line: JournalLine) -> dict[str, Any]:
        entry = {
            "accountId": line.account_id,
            "amount": str(line.amount),
            "description": line.description,
        }
        if line.relation_id:
            entry["relationId"] = line.relation_id
        return entry

    def soft_delete(self, actor: str, at: datetime | None = None) -> "JournalVoucher":
        if self.is_deleted:
            return self
        now = as_utc(at) or utc_now()
        return replace(
            self,
            is_deleted=True,
            deleted_at=now,
            deleted_by=actor,
            updated_at=now,
        )

    def restore(self, actor: str, at: datetime | None = None) -> "JournalVoucher":
        if not self.is_deleted:
            return self
        now = as_utc(at) or utc_now()
        return replace(
            self,
            is_deleted=False,
            deleted_at=None,
            deleted_by=None,
            restored_at=now,
            restored_by=actor,
            updated_at=now,
        )


DEFAULT_REVENUE_KEYS = (
    "tickets",
    "visas",
    "subscriptions",
    "segments",
    "profit_distribution",
    "other",
)

DEFAULT_EXPENSE_KEYS = (
    "tickets",
    "visas",
    "subscriptions",
    "partners",
    "operating",
    "cost_tickets",
    "cost_visas",
    "operating_salaries",
    "operating_rent",
    "operating_utilities",
    "marketing",
)


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _ensure_keys(source: dict[str, Any], defaults: tuple[str, ...]) -> dict[str, str]:
    keys = list(defaults) + [k for k in source if k not in defaults]
    return {key: _clean(source.get(key)) for key in keys}


def _first_non_empty(mapping: dict[str, str]) -> str:
    return next((v for v in mapping.values() if v), "")


def _matches(account_id: str, target: str) -> bool:
    if not account_id or not target:
        return False
    return account_id.strip().startswith(target.strip())


@dataclass(frozen=True)
class FinanceAccountMap:
    """
    Value Object - semantic roles bound to concrete account ids.
    An empty string means the role is not configured.
    """
    receivable_account_id: str = ""
    payable_account_id: str = ""
    default_cash_id: str = ""
    default_bank_id: str = ""
    hybrid_relation_account_id: str = ""
    clearing_account_id: str = ""
    general_revenue_id: str = ""
    general_expense_id: str = ""
    prevent_direct_cash_revenue: bool = False
    revenue_map: dict[str, str] = field(default_factory=dict)
    expense_map: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, raw: dict[str, Any] | None) -> "FinanceAccountMap":
        """Normalise the stored settings document."""
        raw = raw or {}
        revenue_map = _ensure_keys(
            {**(raw.get("revenueMap") or {}), **(raw.get("customRevenues") or {})},
            DEFAULT_REVENUE_KEYS,
        )
        expense_map = _ensure_keys(
            {**(raw.get("expenseMap") or {}), **(raw.get("customExpenses") or {})},
            DEFAULT_EXPENSE_KEYS,
        )
        return cls(
            receivable_account_id=_clean(raw.get("receivableAccountId") or raw.get("arAccountId")),
            payable_account_id=_clean(raw.get("payableAccountId") or raw.get("apAccountId")),
            default_cash_id=_clean(raw.get("defaultCashId")),
            default_bank_id=_clean(raw.get("defaultBankId")),
            hybrid_relation_account_id=_clean(raw.get("hybridRelationAccountId")),
            clearing_account_id=_clean(raw.get("clearingAccountId")),
            general_revenue_id=_clean(raw.get("generalRevenueId")) or _first_non_empty(revenue_map),
            general_expense_id=_clean(raw.get("generalExpenseId")) or _first_non_empty(expense_map),
            prevent_direct_cash_revenue=bool(raw.get("preventDirectCashRevenue")),
            revenue_map=revenue_map,
            expense_map=expense_map,
        )

    def to_settings(self) -> dict[str, Any]:
        return {
            "receivableAccountId": self.receivable_account_id,
            "payableAccountId": self.payable_account_id,
            "arAccountId": self.receivable_account_id,
            "apAccountId": self.payable_account_id,
            "defaultCashId": self.default_cash_id,
            "defaultBankId": self.default_bank_id,
            "hybridRelationAccountId": self.hybrid_relation_account_id,
            "clearingAccountId": self.clearing_account_id,
            "generalRevenueId": self.general_revenue_id,
            "generalExpenseId": self.general_expense_id,
            "preventDirectCashRevenue": self.prevent_direct_cash_revenue,
            "revenueMap": dict(self.revenue_map),
            "expenseMap": dict(self.expense_map),
        }

    def categorize(self, account_id: str) -> AccountCategory:
        """Infer the role of an account by prefix-matching configured ids."""
        if not account_id:
            return AccountCategory.OTHER
        if _matches(account_id, self.default_cash_id):
            return AccountCategory.CASH
        if _matches(account_id, self.default_bank_id):
            return AccountCategory.BANK
        if _matches(account_id, self.hybrid_relation_account_id):
            return AccountCategory.HYBRID
        if _matches(account_id, self.receivable_account_id):
            return AccountCategory.CLIENT
        if _matches(account_id, self.payable_account_id):
            return AccountCategory.SUPPLIER
        if _matches(account_id, self.clearing_account_id):
            return AccountCategory.CLEARING
        if any(_matches(account_id, t) for t in (self.general_revenue_id, *self.revenue_map.values())):
            return AccountCategory.REVENUE
        if any(_matches(account_id, t) for t in (self.general_expense_id, *self.expense_map.values())):
            return AccountCategory.EXPENSE
        return AccountCategory.OTHER
