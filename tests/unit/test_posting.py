"""
Unit tests - journal posting and the chart-of-accounts lookup.
Testing: line validation, balance tolerance, account existence, leaf-only
posting, ledger lines and account categorisation.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from travel_ledger.domain.exceptions import (
    AccountsNotFoundError,
    DuplicateVoucherNumberError,
    InvalidJournalLineError,
    NonPostableAccountError,
    UnbalancedEntryError,
)
from travel_ledger.domain.services import ChartOfAccountsLookup
from travel_ledger.domain.value_objects import AccountCategory, JournalLine
from travel_ledger.infrastructure.database.models import JournalLedgerRow, JournalVoucherRow
from travel_ledger.infrastructure.database.repositories import SqlAccountRepository


def _count(session_factory, model) -> int:
    with session_factory() as s:
        return s.execute(select(func.count()).select_from(model)).scalar_one()


class TestLineValidation:

    def test_empty_lines_rejected(self, posting):
        with pytest.raises(InvalidJournalLineError):
            posting.post("journal", None, None, [], "JE-00001")

    @pytest.mark.parametrize(
        "line",
        [
            JournalLine("1-1-1", debit=Decimal("10"), credit=Decimal("10")),
            JournalLine("1-1-1"),
            JournalLine("1-1-1", debit=Decimal("-5")),
            JournalLine("", debit=Decimal("5")),
        ],
    )
    def test_malformed_line_rejected(self, posting, line):
        with pytest.raises(InvalidJournalLineError):
            posting.post("journal", None, None, [line, JournalLine.credit_line("3-1", Decimal("5"))], "JE-00001")

    def test_missing_voucher_number_rejected(self, posting, balanced_lines):
        with pytest.raises(InvalidJournalLineError):
            posting.post("booking", "b-1", None, balanced_lines, "")


class TestBalanceCheck:

    def test_unbalanced_entry_rejected_with_delta(self, posting, session_factory):
        lines = [
            JournalLine.debit_line("1-2-1", Decimal("100")),
            JournalLine.credit_line("4-1-1", Decimal("90")),
        ]
        with pytest.raises(UnbalancedEntryError) as exc_info:
            posting.post("booking", "b-1", None, lines, "BK-00001")

        assert exc_info.value.delta == Decimal("10")
        assert exc_info.value.ctx["delta"] == "10"
        assert _count(session_factory, JournalVoucherRow) == 0
        assert _count(session_factory, JournalLedgerRow) == 0

    def test_difference_within_tolerance_accepted(self, posting):
        lines = [
            JournalLine.debit_line("1-2-1", Decimal("100")),
            JournalLine.credit_line("4-1-1", Decimal("99.9999")),
        ]
        assert posting.post("booking", "b-1", None, lines, "BK-00001")

    def test_difference_beyond_tolerance_rejected(self, posting):
        lines = [
            JournalLine.debit_line("1-2-1", Decimal("100")),
            JournalLine.credit_line("4-1-1", Decimal("99.999")),
        ]
        with pytest.raises(UnbalancedEntryError):
            posting.post("booking", "b-1", None, lines, "BK-00001")

    def test_split_lines_balance(self, posting):
        lines = [
            JournalLine.debit_line("1-2-1", Decimal("300")),
            JournalLine.credit_line("4-1-1", Decimal("200")),
            JournalLine.credit_line("4-1-2", Decimal("100")),
        ]
        assert posting.post("booking", "b-2", None, lines, "BK-00002")


class TestChartOfAccountsLookup:

    def test_all_missing_accounts_are_reported(self, db):
        lookup = ChartOfAccountsLookup(SqlAccountRepository(db))
        with pytest.raises(AccountsNotFoundError) as exc_info:
            lookup.ensure_postable(["1-1-1", "9-9", "1-1-1", "8-8"])
        assert exc_info.value.missing_ids == ["9-9", "8-8"]

    def test_group_account_cannot_receive_postings(self, posting):
        lines = [
            JournalLine.debit_line("1-1", Decimal("50")),
            JournalLine.credit_line("3-1", Decimal("50")),
        ]
        with pytest.raises(NonPostableAccountError) as exc_info:
            posting.post("journal", None, None, lines, "JE-00001")
        assert exc_info.value.account_ids == ["1-1"]

    def test_existence_checked_before_balance(self, posting):
        lines = [
            JournalLine.debit_line("7-7", Decimal("50")),
            JournalLine.credit_line("3-1", Decimal("20")),
        ]
        with pytest.raises(AccountsNotFoundError):
            posting.post("journal", None, None, lines, "JE-00001")


class TestPosting:

    def test_voucher_dates_are_stored_as_utc(self, posting, voucher_repo, balanced_lines):
        naive_id = posting.post("booking", "b-1", datetime(2026, 3, 1, 9, 30), balanced_lines, "BK-00001")
        offset = timezone(timedelta(hours=3))
        aware_id = posting.post("booking", "b-2", datetime(2026, 3, 1, 12, 30, tzinfo=offset), balanced_lines, "BK-00002")

        expected = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)
        assert voucher_repo.get(naive_id).voucher_date == expected
        assert voucher_repo.get(aware_id).voucher_date == expected
        assert voucher_repo.get(naive_id).created_at.tzinfo is not None

    def test_post_persists_voucher_and_ledger_lines(self, posting, voucher_repo, session_factory, balanced_lines):
        voucher_id = posting.post("booking", "b-42", None, balanced_lines, "BK-00042", created_by="u-1")

        voucher = voucher_repo.get(voucher_id)
        assert voucher.invoice_number == "BK-00042"
        assert voucher.voucher_type == "journal_from_booking"
        assert voucher.source_id == "b-42"
        assert voucher.total_debit == voucher.total_credit == Decimal("250.00")
        assert [line.account_id for line in voucher.lines] == ["1-2-1", "4-1-1"]
        assert voucher.debit_entries[0]["relationId"] == "client-7"
        assert voucher.officer == "u-1"
        assert _count(session_factory, JournalLedgerRow) == 2

    def test_missing_source_id_is_synthesised(self, posting, voucher_repo, balanced_lines):
        voucher = voucher_repo.get(posting.post("journal", None, None, balanced_lines, "JE-00001"))
        assert voucher.source_id.startswith("txn-")
        assert voucher.original_data["sourceId"] == voucher.source_id

    def test_currency_defaults_when_lines_have_none(self, posting, voucher_repo, balanced_lines):
        voucher = voucher_repo.get(posting.post("booking", "b-1", None, balanced_lines, "BK-00001"))
        assert voucher.currency == "USD"
        assert all(line.currency == "USD" for line in voucher.lines)

    def test_line_currency_wins(self, posting, voucher_repo):
        lines = [
            JournalLine.debit_line("1-1-1", Decimal("80"), currency="EUR"),
            JournalLine.credit_line("4-2", Decimal("80"), currency="EUR"),
        ]
        voucher = voucher_repo.get(posting.post("journal", None, None, lines, "JE-00001"))
        assert voucher.currency == "EUR"

    def test_duplicate_voucher_number_rejected(self, posting, balanced_lines):
        posting.post("booking", "b-1", None, balanced_lines, "BK-00001")
        with pytest.raises(DuplicateVoucherNumberError):
            posting.post("booking", "b-2", None, balanced_lines, "BK-00001")

    def test_entries_are_categorised_with_finance_map(self, posting, voucher_repo, finance_map, session_factory):
        lines = [
            JournalLine.debit_line("1-1-1", Decimal("40")),
            JournalLine.credit_line("4-1-2", Decimal("40")),
        ]
        voucher_id = posting.post(
            "visa", "v-1", None, lines, "VS-00001",
            finance_map=finance_map, direct_cash_revenue=True,
        )

        voucher = voucher_repo.get(voucher_id)
        assert voucher.account_categories == {
            "1-1-1": AccountCategory.CASH,
            "4-1-2": AccountCategory.REVENUE,
        }
        assert voucher.direct_cash_revenue is True
        assert voucher.meta["directCash"] is True
        with session_factory() as s:
            categories = s.execute(
                select(JournalLedgerRow.account_category).order_by(JournalLedgerRow.line_number)
            ).scalars().all()
        assert categories == ["cash", "revenue"]
