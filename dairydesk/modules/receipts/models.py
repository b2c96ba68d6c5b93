from dairydesk.database.database import Base
from sqlalchemy import Column, String, ForeignKey, Numeric, Enum, Date, DateTime, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import date
from uuid import uuid4
from dairydesk.common.mixins import TenantMixin, TimestampMixin
import enum


class PaymentMode(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank-transfer"
    UPI = "upi"
    CHEQUE = "cheque"
    CREDIT = "credit"


class ReceiptStatus(str, enum.Enum):
    ACTIVE = "active"  # Aplicado al documento y al saldo
    UNDONE = "undone"  # Reversado; no cuenta en paid_amount


class Receipt(Base, TenantMixin, TimestampMixin):
    __tablename__ = "receipts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    number = Column(String(50), nullable=False)
    party_id = Column(Uuid(as_uuid=True), ForeignKey("parties.id"), nullable=False, index=True)

    # Exactamente uno de los dos
    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=True, index=True)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=True, index=True)

    amount = Column(Numeric(15, 2), nullable=False)
    receipt_date = Column(Date, nullable=False, default=date.today)
    payment_mode = Column(Enum(PaymentMode), nullable=False, default=PaymentMode.CASH)
    reference = Column(String(100), nullable=True)  # Número de cheque, UTR, etc.
    notes = Column(Text, nullable=True)

    status = Column(Enum(ReceiptStatus), nullable=False, default=ReceiptStatus.ACTIVE, index=True)
    converted_at = Column(DateTime(timezone=True), nullable=True)  # Generó factura desde el pedido
    undone_at = Column(DateTime(timezone=True), nullable=True)

    party = relationship("Party")

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_receipt_tenant_number"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == ReceiptStatus.ACTIVE
