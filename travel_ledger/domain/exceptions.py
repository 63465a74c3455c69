"""
Domain errors raised by the ledger core.

Every error carries a ``ctx`` dict with the machine-readable details the
HTTP layer returns alongside the message.
"""

from decimal import Decimal
from typing import Any


def _normalize(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_normalize(v) for v in value]
    return value


class LedgerError(Exception):
    def __init__(self, message: str = "", *, ctx: dict | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.ctx = _normalize(ctx or {})


class NotFound(LedgerError):
    pass
class InvalidInput(LedgerError):
    pass
class Conflict(LedgerError):
    pass
class Unprocessable(LedgerError):
    pass
class Forbidden(LedgerError):
    pass
class ServiceUnavailable(LedgerError):
    pass


class SequenceTransactionFailure(ServiceUnavailable):
    """The counter transaction could not commit within the retry budget."""

    def __init__(self, type_key: str, attempts: int) -> None:
        super().__init__(
            f"Could not allocate a number for sequence {type_key} after {attempts} attempts",
            ctx={"type_key": type_key, "attempts": attempts},
        )
        self.type_key = type_key
        self.attempts = attempts


class SequenceContention(LedgerError):
    """A single counter write lost a race. Retried by the allocator."""


class InvalidSequenceSettingsError(InvalidInput):
    pass


class InvalidJournalLineError(InvalidInput):
    pass


class AccountsNotFoundError(Unprocessable):
    def __init__(self, missing_ids: list[str]) -> None:
        super().__init__(
            "Accounts not found: " + ", ".join(missing_ids),
            ctx={"missing_account_ids": missing_ids},
        )
        self.missing_ids = missing_ids


class NonPostableAccountError(Unprocessable):
    def __init__(self, account_ids: list[str]) -> None:
        super().__init__(
            "Accounts are not leaf accounts and cannot receive postings: " + ", ".join(account_ids),
            ctx={"non_leaf_account_ids": account_ids},
        )
        self.account_ids = account_ids


class UnbalancedEntryError(Unprocessable):
    def __init__(self, total_debit: Decimal, total_credit: Decimal) -> None:
        delta = total_debit - total_credit
        super().__init__(
            f"Entries are not balanced: debit {total_debit} != credit {total_credit}",
            ctx={"total_debit": total_debit, "total_credit": total_credit, "delta": delta},
        )
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.delta = delta


class UnmappedAccountError(Conflict):
    def __init__(self, role: str) -> None:
        super().__init__(
            f"Finance account mapping is not configured for {role}",
            ctx={"role": role},
        )
        self.role = role


class VoucherNotFoundError(NotFound):
    def __init__(self, voucher_id: str) -> None:
        super().__init__(f"Voucher {voucher_id} not found", ctx={"voucher_id": voucher_id})
        self.voucher_id = voucher_id


class InvalidVoucherStateError(Conflict):
    pass


class DuplicateVoucherNumberError(Conflict):
    def __init__(self, invoice_number: str) -> None:
        super().__init__(
            f"Voucher number {invoice_number} is already in use",
            ctx={"invoice_number": invoice_number},
        )
        self.invoice_number = invoice_number


class PermissionDeniedError(Forbidden):
    pass
