"""
Modelos SQLAlchemy para el módulo de Partes (Dealers y Clientes)

- DealerGroup: cohorte de dealers que comparte lista de precios por defecto
- Party: dealer o cliente con saldo firmado (current_balance)
- PartyTransaction: historial de movimientos del saldo (solo lo escribe el ledger)

Convención de saldo:
- Positivo: la parte nos debe (débito)
- Negativo: la parte tiene crédito a favor (anticipo)
"""

from dairydesk.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey, Integer, Numeric, Enum, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from decimal import Decimal
from dairydesk.common.mixins import TenantMixin, TimestampMixin
import enum


class PartyType(str, enum.Enum):
    DEALER = "dealer"
    CUSTOMER = "customer"


class TransactionKind(str, enum.Enum):
    DEBIT = "debit"    # Aumenta lo que la parte debe (pedido, factura)
    CREDIT = "credit"  # Disminuye lo que la parte debe (recibo)


class DealerGroup(Base, TenantMixin, TimestampMixin):
    __tablename__ = "dealer_groups"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    code = Column(String(20), nullable=False)
    name = Column(String(100), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    credit_limit = Column(Numeric(15, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    dealers = relationship("Party", back_populates="dealer_group")

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_dealer_group_tenant_code"),
    )


class Party(Base, TenantMixin, TimestampMixin):
    __tablename__ = "parties"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    party_type = Column(Enum(PartyType), nullable=False, index=True)
    code = Column(String(30), nullable=False)
    name = Column(String(200), nullable=False, index=True)

    # Solo dealers pueden pertenecer a un grupo
    dealer_group_id = Column(Uuid(as_uuid=True), ForeignKey("dealer_groups.id"), nullable=True)

    # Información financiera
    opening_balance = Column(Numeric(15, 2), nullable=False, default=0)
    current_balance = Column(Numeric(15, 2), nullable=False, default=0)
    credit_limit = Column(Numeric(15, 2), nullable=False, default=0)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)  # Descuento estándar de clientes

    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    dealer_group = relationship("DealerGroup", back_populates="dealers")
    transactions = relationship(
        "PartyTransaction",
        back_populates="party",
        order_by="PartyTransaction.entry_number",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_party_tenant_code"),
    )

    @property
    def is_dealer(self) -> bool:
        return self.party_type == PartyType.DEALER

    @property
    def credit_utilization(self) -> Decimal:
        """Porcentaje del límite de crédito consumido por el saldo deudor"""
        limit = Decimal(self.credit_limit or 0)
        balance = Decimal(self.current_balance or 0)
        if limit <= 0 or balance <= 0:
            return Decimal('0.00')
        return (balance / limit * 100).quantize(Decimal('0.01'))


class PartyTransaction(Base, TenantMixin, TimestampMixin):
    """Movimiento del saldo de una parte, con el saldo resultante"""
    __tablename__ = "party_transactions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    party_id = Column(Uuid(as_uuid=True), ForeignKey("parties.id"), nullable=False, index=True)
    entry_number = Column(Integer, nullable=False)  # Consecutivo por parte
    kind = Column(Enum(TransactionKind), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    description = Column(String(255), nullable=True)
    reference_type = Column(String(20), nullable=True)  # order, invoice, receipt
    reference_id = Column(Uuid(as_uuid=True), nullable=True)
    balance_after = Column(Numeric(15, 2), nullable=False)

    party = relationship("Party", back_populates="transactions")
