"""
Domain Layer - value objects for the ledger core.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

ZERO = Decimal("0")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AccountType(str, Enum):
    """Top-level classes of the chart of accounts."""
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class AccountCategory(str, Enum):
    """Role an account plays according to the finance account map."""
    CASH = "cash"
    BANK = "bank"
    CLIENT = "client"
    SUPPLIER = "supplier"
    HYBRID = "hybrid"
    CLEARING = "clearing"
    REVENUE = "revenue"
    EXPENSE = "expense"
    OTHER = "other"


class VoucherState(str, Enum):
    ACTIVE = "active"
    SOFT_DELETED = "soft_deleted"


class SequenceType(str, Enum):
    """Canonical voucher sequence keys."""
    RC = "RC"            # Receipt voucher
    PV = "PV"            # Payment voucher
    EX = "EX"            # Expense voucher
    DS = "DS"            # Distributed receipt
    JE = "JE"            # Manual journal entry
    TR = "TR"            # Transfer / remittance
    BK = "BK"            # Ticket booking
    VS = "VS"            # Visa application
    RF = "RF"            # Refund
    EXC = "EXC"          # Ticket exchange
    EXT = "EXT"          # Exchange transaction
    EXP = "EXP"          # Exchange payment
    VOID = "VOID"        # Ticket void
    SEG = "SEG"          # Segment period
    COMP = "COMP"        # Company segment share
    PARTNER = "PARTNER"  # Partner share
    SUB = "SUB"          # Subscription
    SUBP = "SUBP"        # Subscription payment
    PR = "PR"            # Profit distribution
    CL = "CL"            # Client / relation


@dataclass(frozen=True, slots=True)
class JournalLine:
    """One side of a posting: exactly one of debit/credit is non-zero."""
    account_id: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    currency: str | None = None
    description: str = ""
    relation_id: str | None = None
    company_id: str | None = None

    @property
    def amount(self) -> Decimal:
        return self.debit if self.debit > 0 else self.credit

    @property
    def is_debit(self) -> bool:
        return self.debit > 0

    @classmethod
    def debit_line(cls, account_id: str, amount: Decimal, **kwargs) -> "JournalLine":
        return cls(account_id=account_id, debit=Decimal(amount), credit=ZERO, **kwargs)

    @classmethod
    def credit_line(cls, account_id: str, amount: Decimal, **kwargs) -> "JournalLine":
        return cls(account_id=account_id, debit=ZERO, credit=Decimal(amount), **kwargs)
