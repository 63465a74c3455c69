"""
Unit tests - business posting flows.
Testing: revenue/cost/transaction flows, number allocation, source linking,
audit trail and permissions.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from travel_ledger.core.security import Actor, UserRole
from travel_ledger.domain.entities import FinanceAccountMap
from travel_ledger.domain.exceptions import (
    InvalidJournalLineError,
    PermissionDeniedError,
    UnbalancedEntryError,
    UnmappedAccountError,
)
from travel_ledger.domain.value_objects import JournalLine
from travel_ledger.infrastructure.database.models import AuditLogRow, SourceRecordRow


def _audit_rows(session_factory):
    with session_factory() as s:
        return s.execute(select(AuditLogRow)).scalars().all()


class TestPostJournal:

    def test_links_source_and_audits(self, flows, admin, balanced_lines, session_factory):
        result = flows.post_journal(admin, "booking", balanced_lines, source_id="b-5")

        assert result.invoice_number == "BK-00001"
        with session_factory() as s:
            source = s.execute(select(SourceRecordRow)).scalar_one()
        assert (source.source_type, source.source_id) == ("booking", "b-5")
        assert source.journal_voucher_id == result.voucher_id
        assert source.invoice_number == "BK-00001"

        (entry,) = _audit_rows(session_factory)
        assert (entry.user_id, entry.user_name, entry.action) == ("u-admin", "Alice Admin", "CREATE")
        assert entry.target_type == "journal_voucher"
        assert entry.target_id == result.voucher_id

    def test_failed_post_burns_the_number(self, flows, admin, allocator):
        lines = [
            JournalLine.debit_line("1-2-1", Decimal("10")),
            JournalLine.credit_line("4-1-1", Decimal("9")),
        ]
        with pytest.raises(UnbalancedEntryError):
            flows.post_journal(admin, "booking", lines)
        assert allocator.peek("booking") == "BK-00002"

    def test_malformed_lines_do_not_consume_numbers(self, flows, admin, allocator):
        with pytest.raises(InvalidJournalLineError):
            flows.post_journal(admin, "booking", [])
        assert allocator.peek("booking") == "BK-00001"

    def test_viewer_cannot_post(self, flows, balanced_lines):
        viewer = Actor(user_id="v", user_name="Vic", role=UserRole.VIEWER)
        with pytest.raises(PermissionDeniedError):
            flows.post_journal(viewer, "booking", balanced_lines)


class TestRevenueAndCost:

    def test_revenue_debits_receivable(self, flows, accountant, voucher_repo):
        result = flows.post_revenue(accountant, "visa", "v-3", "visas", Decimal("75"), client_id="c-1")
        voucher = voucher_repo.get(result.voucher_id)

        assert result.invoice_number == "VS-00001"
        assert [(l.account_id, l.debit, l.credit) for l in voucher.lines] == [
            ("1-2-1", Decimal("75"), Decimal("0")),
            ("4-1-2", Decimal("0"), Decimal("75")),
        ]
        assert voucher.meta["serviceKind"] == "visas"
        assert voucher.direct_cash_revenue is False

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_revenue_is_skipped(self, flows, accountant, allocator, amount):
        assert flows.post_revenue(accountant, "booking", "b-1", "tickets", amount) is None
        assert allocator.peek("booking") == "BK-00001"

    def test_direct_cash_revenue_is_tagged(self, flows, accountant, resolver, voucher_repo):
        resolver.update_map(FinanceAccountMap.from_settings({
            "defaultCashId": "1-1-1",
            "preventDirectCashRevenue": False,
            "revenueMap": {"tickets": "4-1-1"},
        }))
        result = flows.post_revenue(accountant, "booking", "b-8", "tickets", Decimal("30"))
        voucher = voucher_repo.get(result.voucher_id)

        assert voucher.lines[0].account_id == "1-1-1"
        assert voucher.direct_cash_revenue is True
        assert voucher.meta["directCash"] is True

    def test_revenue_without_receivable_is_refused(self, flows, accountant, resolver, allocator):
        resolver.update_map(FinanceAccountMap.from_settings({
            "defaultCashId": "1-1-1",
            "preventDirectCashRevenue": True,
        }))
        with pytest.raises(UnmappedAccountError):
            flows.post_revenue(accountant, "booking", "b-8", "tickets", Decimal("30"))
        assert allocator.peek("booking") == "BK-00001"

    def test_cost_credits_payable(self, flows, accountant, voucher_repo):
        result = flows.post_cost(accountant, "tickets", "booking", "b-4", Decimal("200"), supplier_id="s-9")
        voucher = voucher_repo.get(result.voucher_id)

        assert [l.account_id for l in voucher.lines] == ["5-1-1", "2-1"]
        assert voucher.lines[1].relation_id == "s-9"
        assert voucher.meta["costKind"] == "tickets"

    def test_zero_cost_is_skipped(self, flows, accountant):
        assert flows.post_cost(accountant, "tickets", "booking", "b-4", Decimal("0")) is None

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("40")])
    def test_viewer_is_refused_before_anything_else(self, flows, allocator, amount):
        viewer = Actor(user_id="v", user_name="Vic", role=UserRole.VIEWER)
        with pytest.raises(PermissionDeniedError):
            flows.post_revenue(viewer, "booking", "b-1", "tickets", amount)
        with pytest.raises(PermissionDeniedError):
            flows.post_cost(viewer, "tickets", "booking", "b-1", amount)
        with pytest.raises(PermissionDeniedError):
            flows.record_financial_transaction(viewer, "1-1-1", "1-1-1", amount)
        assert allocator.peek("booking") == "BK-00001"


class TestFinancialTransaction:

    def test_transfer_between_accounts(self, flows, accountant, voucher_repo):
        result = flows.record_financial_transaction(accountant, "1-1-2", "1-1-1", Decimal("500"))
        voucher = voucher_repo.get(result.voucher_id)
        assert result.invoice_number == "TR-00001"
        assert voucher.voucher_type == "journal_from_remittance"
        assert voucher.source_id.startswith("txn-")

    def test_same_account_rejected(self, flows, accountant):
        with pytest.raises(InvalidJournalLineError):
            flows.record_financial_transaction(accountant, "1-1-1", "1-1-1", Decimal("5"))

    def test_non_positive_amount_rejected(self, flows, accountant):
        with pytest.raises(InvalidJournalLineError):
            flows.record_financial_transaction(accountant, "1-1-2", "1-1-1", Decimal("0"))


class TestLifecycleFlows:

    def test_audit_trail_for_lifecycle(self, flows, admin, balanced_lines, session_factory):
        voucher_id = flows.post_journal(admin, "booking", balanced_lines, source_id="b-1").voucher_id
        flows.soft_delete_voucher(admin, voucher_id)
        flows.soft_delete_voucher(admin, voucher_id)
        flows.restore_voucher(admin, voucher_id)
        flows.soft_delete_voucher(admin, voucher_id)
        flows.permanently_delete_voucher(admin, voucher_id)

        actions = [row.action for row in _audit_rows(session_factory)]
        assert actions == ["CREATE", "DELETE", "UPDATE", "DELETE", "DELETE"]

    def test_only_admin_purges(self, flows, admin, accountant, balanced_lines):
        voucher_id = flows.post_journal(admin, "booking", balanced_lines).voucher_id
        flows.soft_delete_voucher(accountant, voucher_id)
        with pytest.raises(PermissionDeniedError):
            flows.permanently_delete_voucher(accountant, voucher_id)

    def test_source_record_follows_only_its_linked_voucher(self, flows, accountant, admin, session_factory):
        revenue = flows.post_revenue(accountant, "booking", "b-1", "tickets", Decimal("300"))
        cost = flows.post_cost(accountant, "tickets", "booking", "b-1", Decimal("200"))

        def source():
            with session_factory() as s:
                return s.execute(select(SourceRecordRow)).scalar_one()

        assert source().journal_voucher_id == cost.voucher_id

        flows.soft_delete_voucher(accountant, revenue.voucher_id)
        assert source().is_deleted is False

        flows.soft_delete_voucher(accountant, cost.voucher_id)
        assert source().is_deleted is True

        flows.restore_voucher(admin, revenue.voucher_id)
        assert source().is_deleted is True

        flows.restore_voucher(admin, cost.voucher_id)
        assert source().is_deleted is False
