"""Application layer - Use cases and DTOs."""

from travel_ledger.application.dto.accounting_dto import (
    AccountResponseDTO,
    FinanceAccountMapDTO,
    JournalPostDTO,
    SequenceResponseDTO,
    VoucherResponseDTO,
)
from travel_ledger.application.posting_flows import LedgerFlows, PostingResult
