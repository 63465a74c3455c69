"""
Application Use Cases - business flows that post to the ledger.

Each flow allocates the voucher number, posts through the domain service,
links the originating business record and writes the audit trail.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

from travel_ledger.core.security import Actor, AuditAction, AuditEntry, Permission, RBACService
from travel_ledger.domain.entities import JournalVoucher
from travel_ledger.domain.exceptions import InvalidJournalLineError
from travel_ledger.domain.services import (
    FinanceAccountMapResolver,
    JournalPostingService,
    SequenceAllocator,
    VoucherLifecycleService,
)
from travel_ledger.domain.value_objects import JournalLine

logger = logging.getLogger(__name__)


class AuditWriter(Protocol):
    def write(self, entry: AuditEntry) -> None:
        ...


class SourceRecordLinker(Protocol):
    def link(self, source_type: str, source_id: str, voucher_id: str, invoice_number: str) -> Any:
        ...


@dataclass(frozen=True)
class PostingResult:
    voucher_id: str
    invoice_number: str


class LedgerFlows:
    def __init__(
        self,
        allocator: SequenceAllocator,
        posting: JournalPostingService,
        lifecycle: VoucherLifecycleService,
        resolver: FinanceAccountMapResolver,
        source_records: SourceRecordLinker,
        audit: AuditWriter,
        rbac: RBACService | None = None,
    ):
        self.allocator = allocator
        self.posting = posting
        self.lifecycle = lifecycle
        self.resolver = resolver
        self.source_records = source_records
        self.audit = audit
        self.rbac = rbac or RBACService()

    def post_journal(
        self,
        actor: Actor,
        source_type: str,
        lines: Sequence[JournalLine],
        source_id: str | None = None,
        voucher_date: datetime | None = None,
        notes: str = "",
        meta: dict[str, Any] | None = None,
        direct_cash_revenue: bool = False,
    ) -> PostingResult:
        """Post explicit lines. The number is consumed even if the post fails."""
        self.rbac.require(actor, Permission.VOUCHER_CREATE)
        # Malformed lines are rejected before a number is allocated.
        JournalPostingService.validate_lines(lines)

        invoice_number = self.allocator.allocate(source_type)
        voucher_id = self.posting.post(
            source_type,
            source_id,
            voucher_date,
            lines,
            invoice_number,
            created_by=actor.user_id,
            officer=actor.user_name,
            notes=notes,
            meta=meta,
            direct_cash_revenue=direct_cash_revenue,
            finance_map=self.resolver.get_map(),
        )
        if source_id:
            self.source_records.link(source_type, source_id, voucher_id, invoice_number)

        self._audit(
            actor,
            AuditAction.CREATE,
            voucher_id,
            f"Posted {invoice_number} for {source_type} {source_id or ''}".strip(),
        )
        return PostingResult(voucher_id=voucher_id, invoice_number=invoice_number)

    def post_revenue(
        self,
        actor: Actor,
        source_type: str,
        source_id: str,
        service_kind: str,
        amount: Decimal,
        currency: str | None = None,
        client_id: str | None = None,
        voucher_date: datetime | None = None,
        description: str = "",
    ) -> PostingResult | None:
        """Debit receivables (or tagged cash), credit the revenue account of the kind."""
        self.rbac.require(actor, Permission.VOUCHER_CREATE)
        if amount <= 0:
            logger.debug("revenue_skipped", extra={"source_type": source_type, "source_id": source_id})
            return None

        debit_account, direct_cash = self.resolver.resolve_revenue_debit_account()
        credit_account = self.resolver.resolve_revenue_account(service_kind)
        text = description or f"Revenue {service_kind} {source_id}"
        lines = [
            JournalLine.debit_line(debit_account, amount, currency=currency, description=text, relation_id=client_id),
            JournalLine.credit_line(credit_account, amount, currency=currency, description=text),
        ]
        return self.post_journal(
            actor,
            source_type,
            lines,
            source_id=source_id,
            voucher_date=voucher_date,
            notes=text,
            meta={"serviceKind": service_kind, "kind": "revenue"},
            direct_cash_revenue=direct_cash,
        )

    def post_cost(
        self,
        actor: Actor,
        cost_kind: str,
        source_type: str,
        source_id: str,
        amount: Decimal,
        currency: str | None = None,
        supplier_id: str | None = None,
        voucher_date: datetime | None = None,
        description: str = "",
    ) -> PostingResult | None:
        """Debit the expense account of the kind, credit payables."""
        self.rbac.require(actor, Permission.VOUCHER_CREATE)
        if amount <= 0:
            logger.debug("cost_skipped", extra={"source_type": source_type, "source_id": source_id})
            return None

        debit_account = self.resolver.resolve_expense_account(cost_kind)
        credit_account = self.resolver.resolve_payable_account()
        text = description or f"Cost {cost_kind} {source_id}"
        lines = [
            JournalLine.debit_line(debit_account, amount, currency=currency, description=text),
            JournalLine.credit_line(credit_account, amount, currency=currency, description=text, relation_id=supplier_id),
        ]
        return self.post_journal(
            actor,
            source_type,
            lines,
            source_id=source_id,
            voucher_date=voucher_date,
            notes=text,
            meta={"costKind": cost_kind, "kind": "cost"},
        )

    def record_financial_transaction(
        self,
        actor: Actor,
        debit_account_id: str,
        credit_account_id: str,
        amount: Decimal,
        source_type: str = "remittance",
        source_id: str | None = None,
        currency: str | None = None,
        relation_id: str | None = None,
        voucher_date: datetime | None = None,
        description: str = "",
    ) -> PostingResult:
        self.rbac.require(actor, Permission.VOUCHER_CREATE)
        if amount <= 0:
            raise InvalidJournalLineError("Amount must be positive", ctx={"amount": amount})
        if debit_account_id == credit_account_id:
            raise InvalidJournalLineError(
                "Debit and credit accounts must differ",
                ctx={"account_id": debit_account_id},
            )

        lines = [
            JournalLine.debit_line(
                debit_account_id, amount, currency=currency, description=description, relation_id=relation_id
            ),
            JournalLine.credit_line(
                credit_account_id, amount, currency=currency, description=description, relation_id=relation_id
            ),
        ]
        return self.post_journal(
            actor,
            source_type,
            lines,
            source_id=source_id,
            voucher_date=voucher_date,
            notes=description,
            meta={"kind": "transaction"},
        )

    def soft_delete_voucher(self, actor: Actor, voucher_id: str) -> JournalVoucher:
        self.rbac.require(actor, Permission.VOUCHER_DELETE)
        was_deleted = self._is_deleted(voucher_id)
        voucher = self.lifecycle.soft_delete(voucher_id, actor.user_id)
        if not was_deleted:
            self._audit(actor, AuditAction.DELETE, voucher_id, f"Moved {voucher.invoice_number} to trash")
        return voucher

    def restore_voucher(self, actor: Actor, voucher_id: str) -> JournalVoucher:
        self.rbac.require(actor, Permission.VOUCHER_RESTORE)
        was_deleted = self._is_deleted(voucher_id)
        voucher = self.lifecycle.restore(voucher_id, actor.user_id)
        if was_deleted:
            self._audit(actor, AuditAction.UPDATE, voucher_id, f"Restored {voucher.invoice_number}")
        return voucher

    def permanently_delete_voucher(self, actor: Actor, voucher_id: str) -> JournalVoucher:
        self.rbac.require(actor, Permission.VOUCHER_PURGE)
        voucher = self.lifecycle.permanent_delete(voucher_id, actor.user_id)
        self._audit(actor, AuditAction.DELETE, voucher_id, f"Permanently deleted {voucher.invoice_number}")
        return voucher

    def _is_deleted(self, voucher_id: str) -> bool:
        voucher = self.lifecycle.voucher_repo.get(voucher_id)
        return voucher is not None and voucher.is_deleted

    def _audit(self, actor: Actor, action: AuditAction, target_id: str, description: str) -> None:
        self.audit.write(
            AuditEntry(
                user_id=actor.user_id,
                user_name=actor.user_name,
                action=action,
                target_type="journal_voucher",
                target_id=target_id,
                description=description,
            )
        )
