"""
API DTOs - Data Transfer Objects for API requests/responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from travel_ledger.domain.entities import Account, FinanceAccountMap, JournalVoucher, SequenceCounter
from travel_ledger.domain.value_objects import JournalLine


class JournalLineDTO(BaseModel):
    """DTO - One debit or credit line."""
    account_id: str = Field(..., min_length=1, description="Leaf account id")
    debit: Decimal = Field(Decimal("0"), ge=0)
    credit: Decimal = Field(Decimal("0"), ge=0)
    currency: str | None = None
    description: str = ""
    relation_id: str | None = Field(None, description="Client, supplier or partner id")
    company_id: str | None = None

    def to_line(self) -> JournalLine:
        return JournalLine(
            account_id=self.account_id,
            debit=self.debit,
            credit=self.credit,
            currency=self.currency,
            description=self.description,
            relation_id=self.relation_id,
            company_id=self.company_id,
        )


class JournalPostDTO(BaseModel):
    """DTO - Manual journal voucher."""
    source_type: str = Field("journal", min_length=1)
    source_id: str | None = None
    voucher_date: datetime | None = None
    notes: str = Field("", max_length=1000)
    meta: dict[str, Any] = Field(default_factory=dict)
    lines: list[JournalLineDTO] = Field(..., min_length=1)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "source_type": "journal",
            "notes": "Owner capital injection",
            "lines": [
                {"account_id": "1-1-2", "debit": "5000.00", "description": "Bank deposit"},
                {"account_id": "3-1", "credit": "5000.00", "description": "Capital"},
            ],
        }
    })


class RevenuePostDTO(BaseModel):
    """DTO - Revenue recognition for a service sale."""
    source_type: str = Field(..., min_length=1, description="booking, visa, subscription, ...")
    source_id: str = Field(..., min_length=1)
    service_kind: str = Field(..., min_length=1, description="Key in the revenue map")
    amount: Decimal
    currency: str | None = None
    client_id: str | None = None
    voucher_date: datetime | None = None
    description: str = ""


class CostPostDTO(BaseModel):
    """DTO - Supplier cost for a service sale."""
    cost_kind: str = Field(..., min_length=1, description="Key in the expense map")
    source_type: str = Field(..., min_length=1)
    source_id: str = Field(..., min_length=1)
    amount: Decimal
    currency: str | None = None
    supplier_id: str | None = None
    voucher_date: datetime | None = None
    description: str = ""


class FinancialTransactionDTO(BaseModel):
    """DTO - Transfer between two accounts (receipt, payment, remittance)."""
    source_type: str = Field("remittance", min_length=1)
    source_id: str | None = None
    debit_account_id: str = Field(..., min_length=1)
    credit_account_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    currency: str | None = None
    relation_id: str | None = None
    voucher_date: datetime | None = None
    description: str = ""


class JournalEntryDTO(BaseModel):
    account_id: str
    debit: Decimal
    credit: Decimal
    currency: str | None
    description: str
    relation_id: str | None = None
    account_category: str = "other"


class VoucherResponseDTO(BaseModel):
    """DTO - Posted voucher."""
    id: str
    invoice_number: str
    voucher_type: str
    voucher_date: datetime
    currency: str
    source_type: str
    source_id: str
    notes: str
    created_by: str
    officer: str
    direct_cash_revenue: bool
    total_debit: Decimal
    total_credit: Decimal
    entries: list[JournalEntryDTO]
    meta: dict[str, Any]
    is_deleted: bool
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    restored_at: datetime | None = None
    restored_by: str | None = None
    created_at: datetime

    @classmethod
    def from_entity(cls, voucher: JournalVoucher) -> "VoucherResponseDTO":
        return cls(
            id=voucher.id,
            invoice_number=voucher.invoice_number,
            voucher_type=voucher.voucher_type,
            voucher_date=voucher.voucher_date,
            currency=voucher.currency,
            source_type=voucher.source_type,
            source_id=voucher.source_id,
            notes=voucher.notes,
            created_by=voucher.created_by,
            officer=voucher.officer,
            direct_cash_revenue=voucher.direct_cash_revenue,
            total_debit=voucher.total_debit,
            total_credit=voucher.total_credit,
            entries=[
                JournalEntryDTO(
                    account_id=line.account_id,
                    debit=line.debit,
                    credit=line.credit,
                    currency=line.currency,
                    description=line.description,
                    relation_id=line.relation_id,
                    account_category=voucher.account_categories[line.account_id].value
                    if line.account_id in voucher.account_categories
                    else "other",
                )
                for line in voucher.lines
            ],
            meta=voucher.meta,
            is_deleted=voucher.is_deleted,
            deleted_at=voucher.deleted_at,
            deleted_by=voucher.deleted_by,
            restored_at=voucher.restored_at,
            restored_by=voucher.restored_by,
            created_at=voucher.created_at,
        )


class PostingResultDTO(BaseModel):
    """DTO - Result of a posting flow. Empty when nothing was posted."""
    voucher_id: str | None
    invoice_number: str | None = None
    posted: bool


class SequenceResponseDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type_key: str
    label: str
    prefix: str
    counter_value: int
    pad_width: int
    next_number: str
    updated_at: datetime

    @classmethod
    def from_entity(cls, counter: SequenceCounter, next_number: str) -> "SequenceResponseDTO":
        return cls(
            type_key=counter.type_key,
            label=counter.label,
            prefix=counter.prefix,
            counter_value=counter.counter_value,
            pad_width=counter.pad_width,
            next_number=next_number,
            updated_at=counter.updated_at,
        )


class SequenceUpdateDTO(BaseModel):
    label: str | None = None
    prefix: str | None = Field(None, min_length=1, max_length=16)
    value: int | None = Field(None, ge=0, description="Last number handed out")
    pad_width: int | None = None


class AllocatedNumberDTO(BaseModel):
    type_key: str
    number: str


class FinanceAccountMapDTO(BaseModel):
    """DTO - Finance account settings, camelCase on the wire."""
    model_config = ConfigDict(populate_by_name=True)

    receivable_account_id: str = Field("", alias="receivableAccountId")
    payable_account_id: str = Field("", alias="payableAccountId")
    default_cash_id: str = Field("", alias="defaultCashId")
    default_bank_id: str = Field("", alias="defaultBankId")
    hybrid_relation_account_id: str = Field("", alias="hybridRelationAccountId")
    clearing_account_id: str = Field("", alias="clearingAccountId")
    general_revenue_id: str = Field("", alias="generalRevenueId")
    general_expense_id: str = Field("", alias="generalExpenseId")
    prevent_direct_cash_revenue: bool = Field(False, alias="preventDirectCashRevenue")
    revenue_map: dict[str, str] = Field(default_factory=dict, alias="revenueMap")
    expense_map: dict[str, str] = Field(default_factory=dict, alias="expenseMap")
    custom_revenues: dict[str, str] = Field(default_factory=dict, alias="customRevenues")
    custom_expenses: dict[str, str] = Field(default_factory=dict, alias="customExpenses")

    @field_validator("revenue_map", "expense_map", "custom_revenues", "custom_expenses", mode="before")
    @classmethod
    def _drop_nulls(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: v or "" for k, v in value.items()}
        return value

    def to_domain(self) -> FinanceAccountMap:
        return FinanceAccountMap.from_settings(self.model_dump(by_alias=True))

    @classmethod
    def from_domain(cls, finance_map: FinanceAccountMap) -> "FinanceAccountMapDTO":
        return cls.model_validate(finance_map.to_settings())


class AccountResponseDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    name: str
    account_type: str
    parent_id: str | None
    is_leaf: bool
    is_active: bool

    @classmethod
    def from_entity(cls, account: Account) -> "AccountResponseDTO":
        return cls(
            id=account.id,
            code=account.code,
            name=account.name,
            account_type=account.account_type.value,
            parent_id=account.parent_id,
            is_leaf=account.is_leaf,
            is_active=account.is_active,
        )

