"""
API Routers - voucher number sequences.
"""

from fastapi import APIRouter, Depends

from travel_ledger.api.dependencies import get_audit_writer, get_sequence_allocator, require
from travel_ledger.application.dto.accounting_dto import (
    AllocatedNumberDTO,
    SequenceResponseDTO,
    SequenceUpdateDTO,
)
from travel_ledger.core.security import Actor, AuditAction, AuditEntry, Permission
from travel_ledger.domain.sequences import format_voucher_number, normalize_type_key
from travel_ledger.domain.services import SequenceAllocator
from travel_ledger.infrastructure.audit import SqlAuditLogWriter

router = APIRouter(prefix="/api/v1", tags=["Sequences"])


@router.get("/sequences", response_model=list[SequenceResponseDTO])
def list_sequences(
    actor: Actor = Depends(require(Permission.SEQUENCE_VIEW)),
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
):
    return [
        SequenceResponseDTO.from_entity(
            counter,
            format_voucher_number(counter.prefix, counter.counter_value + 1, counter.pad_width),
        )
        for counter in allocator.list_sequences()
    ]


@router.post("/sequences/{type_key}/next", response_model=AllocatedNumberDTO)
def next_number(
    type_key: str,
    actor: Actor = Depends(require(Permission.SEQUENCE_ALLOCATE)),
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
):
    """Consume the next number of a sequence."""
    return AllocatedNumberDTO(
        type_key=normalize_type_key(type_key).type_key,
        number=allocator.allocate(type_key),
    )


@router.put("/sequences/{type_key}", response_model=SequenceResponseDTO)
def update_sequence(
    type_key: str,
    dto: SequenceUpdateDTO,
    actor: Actor = Depends(require(Permission.SEQUENCE_EDIT)),
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
    audit: SqlAuditLogWriter = Depends(get_audit_writer),
):
    """Change label, prefix, pad width or the last issued number."""
    counter = allocator.set_sequence(
        type_key,
        label=dto.label,
        prefix=dto.prefix,
        value=dto.value,
        pad_width=dto.pad_width,
    )
    audit.write(
        AuditEntry(
            user_id=actor.user_id,
            user_name=actor.user_name,
            action=AuditAction.UPDATE,
            target_type="sequence",
            target_id=counter.type_key,
            description=f"Sequence {counter.type_key} set to {counter.prefix}/{counter.counter_value}",
        )
    )
    return SequenceResponseDTO.from_entity(
        counter,
        format_voucher_number(counter.prefix, counter.counter_value + 1, counter.pad_width),
    )
