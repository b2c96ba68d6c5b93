from pydantic import BaseModel, Field, ConfigDict, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
from enum import Enum


class PaymentMode(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank-transfer"
    UPI = "upi"
    CHEQUE = "cheque"
    CREDIT = "credit"


class ReceiptStatus(str, Enum):
    ACTIVE = "active"
    UNDONE = "undone"


class ReceiptCreate(BaseModel):
    party_id: UUID
    order_id: Optional[UUID] = None
    invoice_id: Optional[UUID] = None
    amount: Decimal = Field(..., description="Monto debe ser mayor a 0")
    receipt_date: date = Field(default_factory=date.today)
    payment_mode: PaymentMode = PaymentMode.CASH
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ReceiptUpdate(BaseModel):
    amount: Optional[Decimal] = None
    receipt_date: Optional[date] = None
    payment_mode: Optional[PaymentMode] = None
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ReceiptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    number: str
    party_id: UUID
    order_id: Optional[UUID] = None
    invoice_id: Optional[UUID] = None
    amount: Decimal
    receipt_date: date
    payment_mode: PaymentMode
    reference: Optional[str] = None
    notes: Optional[str] = None
    status: ReceiptStatus
    converted_at: Optional[datetime] = None
    undone_at: Optional[datetime] = None
    created_at: datetime


class ReceiptFilters(BaseModel):
    party_id: Optional[UUID] = None
    payment_mode: Optional[PaymentMode] = None
    status: Optional[ReceiptStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError('end_date no puede ser anterior a start_date')
        return self


class ReceiptList(BaseModel):
    items: List[ReceiptOut]
    total: int
    limit: int
    offset: int


class ReceiptInvoiceResult(BaseModel):
    """Resultado de generar la factura del pedido de un recibo"""
    receipt: ReceiptOut
    invoice_id: UUID
    invoice_number: str


# ===== Auditoría del ledger =====

class LedgerDrift(BaseModel):
    entity: str       # order, invoice, party
    entity_id: UUID
    reference: str    # número de documento o código de la parte
    field: str
    stored: str
    expected: str


class LedgerAuditReport(BaseModel):
    tenant_id: UUID
    documents_checked: int = 0
    parties_checked: int = 0
    drifts: List[LedgerDrift] = Field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.drifts
