"""
API Routers - chart of accounts.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from travel_ledger.api.dependencies import require
from travel_ledger.application.dto.accounting_dto import AccountResponseDTO
from travel_ledger.core.security import Actor, Permission
from travel_ledger.infrastructure.database import get_db
from travel_ledger.infrastructure.database.repositories import SqlAccountRepository

router = APIRouter(prefix="/api/v1", tags=["Chart of accounts"])


@router.get("/accounts", response_model=list[AccountResponseDTO])
def list_accounts(
    leaf_only: bool = False,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require(Permission.VOUCHER_VIEW)),
):
    """Chart of accounts ordered by code. ``leaf_only`` returns postable accounts."""
    return [AccountResponseDTO.from_entity(a) for a in SqlAccountRepository(db).list_accounts(leaf_only)]
