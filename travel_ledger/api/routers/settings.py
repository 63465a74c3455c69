"""
API Routers - finance account settings.
"""

from fastapi import APIRouter, Depends

from travel_ledger.api.dependencies import get_audit_writer, get_finance_resolver, require
from travel_ledger.application.dto.accounting_dto import FinanceAccountMapDTO
from travel_ledger.core.security import Actor, AuditAction, AuditEntry, Permission
from travel_ledger.domain.services import FinanceAccountMapResolver
from travel_ledger.infrastructure.audit import SqlAuditLogWriter

router = APIRouter(prefix="/api/v1/settings", tags=["Settings"])


@router.get("/finance-accounts", response_model=FinanceAccountMapDTO, response_model_by_alias=True)
def get_finance_accounts(
    actor: Actor = Depends(require(Permission.SETTINGS_VIEW)),
    resolver: FinanceAccountMapResolver = Depends(get_finance_resolver),
):
    return FinanceAccountMapDTO.from_domain(resolver.get_map())


@router.put("/finance-accounts", response_model=FinanceAccountMapDTO, response_model_by_alias=True)
def update_finance_accounts(
    dto: FinanceAccountMapDTO,
    actor: Actor = Depends(require(Permission.SETTINGS_EDIT)),
    resolver: FinanceAccountMapResolver = Depends(get_finance_resolver),
    audit: SqlAuditLogWriter = Depends(get_audit_writer),
):
    """Replace the finance account map. Takes effect immediately in this process."""
    finance_map = resolver.update_map(dto.to_domain())
    audit.write(
        AuditEntry(
            user_id=actor.user_id,
            user_name=actor.user_name,
            action=AuditAction.UPDATE,
            target_type="settings",
            target_id="finance_accounts",
            description="Finance account map updated",
        )
    )
    return FinanceAccountMapDTO.from_domain(finance_map)
