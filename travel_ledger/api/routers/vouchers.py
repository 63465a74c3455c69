"""
API Routers - journal vouchers.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from travel_ledger.api.dependencies import get_actor, get_flows, require
from travel_ledger.application.dto.accounting_dto import (
    CostPostDTO,
    FinancialTransactionDTO,
    JournalPostDTO,
    PostingResultDTO,
    RevenuePostDTO,
    VoucherResponseDTO,
)
from travel_ledger.application.posting_flows import LedgerFlows, PostingResult
from travel_ledger.core.security import Actor, Permission
from travel_ledger.domain.exceptions import VoucherNotFoundError
from travel_ledger.infrastructure.database import get_db
from travel_ledger.infrastructure.database.repositories import SqlVoucherRepository

router = APIRouter(prefix="/api/v1", tags=["Vouchers"])


def _load(db: Session, voucher_id: str) -> VoucherResponseDTO:
    voucher = SqlVoucherRepository(db).get(voucher_id)
    if voucher is None:
        raise VoucherNotFoundError(voucher_id)
    return VoucherResponseDTO.from_entity(voucher)


def _result(result: PostingResult | None) -> PostingResultDTO:
    if result is None:
        return PostingResultDTO(voucher_id=None, posted=False)
    return PostingResultDTO(voucher_id=result.voucher_id, invoice_number=result.invoice_number, posted=True)


@router.post("/vouchers", response_model=VoucherResponseDTO, status_code=status.HTTP_201_CREATED)
def create_voucher(
    dto: JournalPostDTO,
    actor: Actor = Depends(get_actor),
    flows: LedgerFlows = Depends(get_flows),
    db: Session = Depends(get_db),
):
    """
    Post a manual journal voucher.

    - Every line has exactly one of debit or credit
    - Debits must equal credits
    - Only leaf accounts receive postings
    """
    result = flows.post_journal(
        actor,
        dto.source_type,
        [line.to_line() for line in dto.lines],
        source_id=dto.source_id,
        voucher_date=dto.voucher_date,
        notes=dto.notes,
        meta=dto.meta,
    )
    return _load(db, result.voucher_id)


@router.post("/vouchers/revenue", response_model=PostingResultDTO, status_code=status.HTTP_201_CREATED)
def post_revenue(
    dto: RevenuePostDTO,
    actor: Actor = Depends(get_actor),
    flows: LedgerFlows = Depends(get_flows),
):
    """Recognise revenue for a sale. A non-positive amount posts nothing."""
    result = flows.post_revenue(
        actor,
        dto.source_type,
        dto.source_id,
        dto.service_kind,
        dto.amount,
        currency=dto.currency,
        client_id=dto.client_id,
        voucher_date=dto.voucher_date,
        description=dto.description,
    )
    return _result(result)


@router.post("/vouchers/cost", response_model=PostingResultDTO, status_code=status.HTTP_201_CREATED)
def post_cost(
    dto: CostPostDTO,
    actor: Actor = Depends(get_actor),
    flows: LedgerFlows = Depends(get_flows),
):
    result = flows.post_cost(
        actor,
        dto.cost_kind,
        dto.source_type,
        dto.source_id,
        dto.amount,
        currency=dto.currency,
        supplier_id=dto.supplier_id,
        voucher_date=dto.voucher_date,
        description=dto.description,
    )
    return _result(result)


@router.post("/vouchers/transactions", response_model=VoucherResponseDTO, status_code=status.HTTP_201_CREATED)
def record_transaction(
    dto: FinancialTransactionDTO,
    actor: Actor = Depends(get_actor),
    flows: LedgerFlows = Depends(get_flows),
    db: Session = Depends(get_db),
):
    result = flows.record_financial_transaction(
        actor,
        dto.debit_account_id,
        dto.credit_account_id,
        dto.amount,
        source_type=dto.source_type,
        source_id=dto.source_id,
        currency=dto.currency,
        relation_id=dto.relation_id,
        voucher_date=dto.voucher_date,
        description=dto.description,
    )
    return _load(db, result.voucher_id)


@router.get("/vouchers", response_model=list[VoucherResponseDTO])
def list_vouchers(
    source_type: str | None = None,
    include_deleted: bool = False,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    skip: int = 0,
    limit: int = 100,
    actor: Actor = Depends(require(Permission.VOUCHER_VIEW)),
    db: Session = Depends(get_db),
):
    """List vouchers. Soft-deleted vouchers are hidden unless requested."""
    vouchers = SqlVoucherRepository(db).list_vouchers(
        source_type=source_type,
        include_deleted=include_deleted,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return [VoucherResponseDTO.from_entity(v) for v in vouchers]


@router.get("/vouchers/{voucher_id}", response_model=VoucherResponseDTO)
def get_voucher(
    voucher_id: str,
    actor: Actor = Depends(require(Permission.VOUCHER_VIEW)),
    db: Session = Depends(get_db),
):
    return _load(db, voucher_id)


@router.post("/vouchers/{voucher_id}/delete", response_model=VoucherResponseDTO)
def soft_delete_voucher(
    voucher_id: str,
    actor: Actor = Depends(get_actor),
    flows: LedgerFlows = Depends(get_flows),
):
    """Move a voucher to the trash. Its lines stop counting towards balances."""
    return VoucherResponseDTO.from_entity(flows.soft_delete_voucher(actor, voucher_id))


@router.post("/vouchers/{voucher_id}/restore", response_model=VoucherResponseDTO)
def restore_voucher(
    voucher_id: str,
    actor: Actor = Depends(get_actor),
    flows: LedgerFlows = Depends(get_flows),
):
    return VoucherResponseDTO.from_entity(flows.restore_voucher(actor, voucher_id))


@router.delete("/vouchers/{voucher_id}", response_model=VoucherResponseDTO)
def permanently_delete_voucher(
    voucher_id: str,
    actor: Actor = Depends(get_actor),
    flows: LedgerFlows = Depends(get_flows),
):
    """Remove a trashed voucher for good. Admin only."""
    return VoucherResponseDTO.from_entity(flows.permanently_delete_voucher(actor, voucher_id))
