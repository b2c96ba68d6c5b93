"""
Modelos de pedidos y facturas

Las líneas guardan un snapshot inmutable del producto, del precio resuelto y
de las tasas GST al momento de crear el documento; ediciones posteriores del
catálogo o de las listas de precios no las afectan.

Los campos de pago (paid_amount, due_amount, payment_status) solo los escribe
LedgerService a partir de los recibos activos.
"""

from dairydesk.database.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Date, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import date
from uuid import uuid4
from dairydesk.common.mixins import TenantMixin, TimestampMixin
from dairydesk.modules.pricing.models import DiscountType
from dairydesk.modules.products.models import TaxMethod
import enum


class AdjustmentOperation(str, enum.Enum):
    ADD = "add"
    SUBTRACT = "subtract"


class OrderStatus(str, enum.Enum):
    PLACED = "placed"        # Pedido registrado, saldo cargado a la parte
    INVOICED = "invoiced"    # Convertido a factura
    CANCELLED = "cancelled"  # Anulado, cargo reversado


class InvoiceStatus(str, enum.Enum):
    OPEN = "open"
    VOID = "void"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"      # paid_amount = 0
    PARTIAL = "partial"      # 0 < paid_amount < total
    COMPLETED = "completed"  # paid_amount >= total


class DocumentAmountsMixin:
    """Resumen de precios y estado de pago compartido por pedidos y facturas"""

    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    item_discount = Column(Numeric(15, 2), nullable=False, default=0)
    tax_total = Column(Numeric(15, 2), nullable=False, default=0)
    igst_total = Column(Numeric(15, 2), nullable=False, default=0)
    cgst_total = Column(Numeric(15, 2), nullable=False, default=0)
    sgst_total = Column(Numeric(15, 2), nullable=False, default=0)
    grand_total = Column(Numeric(15, 2), nullable=False, default=0)  # Suma de line_total

    # Descuento global (después de impuestos, sobre grand_total)
    global_discount_type = Column(Enum(DiscountType), nullable=True)
    global_discount_value = Column(Numeric(15, 2), nullable=False, default=0)
    global_discount_amount = Column(Numeric(15, 2), nullable=False, default=0)

    # Ajuste personalizado (ej. flete, redondeo)
    adjustment_text = Column(String(200), nullable=True)
    adjustment_amount = Column(Numeric(15, 2), nullable=False, default=0)
    adjustment_type = Column(Enum(DiscountType), nullable=False, default=DiscountType.FIXED)
    adjustment_operation = Column(Enum(AdjustmentOperation), nullable=False, default=AdjustmentOperation.SUBTRACT)
    adjustment_applied = Column(Numeric(15, 2), nullable=False, default=0)

    total = Column(Numeric(15, 2), nullable=False, default=0)

    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    paid_amount = Column(Numeric(15, 2), nullable=False, default=0)
    due_amount = Column(Numeric(15, 2), nullable=False, default=0)

    notes = Column(Text, nullable=True)


class LineSnapshotMixin:
    position = Column(Integer, nullable=False)

    # Snapshot del producto
    name = Column(String(200), nullable=False)
    sku = Column(String(50), nullable=False)
    packaging_type = Column(String(20), nullable=True)
    packaging_size_value = Column(Numeric(10, 3), nullable=True)
    packaging_size_unit = Column(String(20), nullable=True)
    units_per_package = Column(Numeric(10, 3), nullable=True)
    tax_method = Column(Enum(TaxMethod), nullable=False, default=TaxMethod.EXCLUSIVE)

    quantity = Column(Numeric(10, 3), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)  # Precio resuelto
    price_source = Column(String(20), nullable=False)    # individual, group, product
    discount_type = Column(Enum(DiscountType), nullable=False, default=DiscountType.PERCENTAGE)
    discount_value = Column(Numeric(15, 2), nullable=False, default=0)

    # Snapshot de tasas: igst o cgst+sgst, nunca ambos
    igst_rate = Column(Numeric(5, 2), nullable=False, default=0)
    cgst_rate = Column(Numeric(5, 2), nullable=False, default=0)
    sgst_rate = Column(Numeric(5, 2), nullable=False, default=0)

    line_subtotal = Column(Numeric(15, 2), nullable=False)
    discount_amount = Column(Numeric(15, 2), nullable=False, default=0)
    taxable_value = Column(Numeric(15, 2), nullable=False)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    igst_amount = Column(Numeric(15, 2), nullable=False, default=0)
    cgst_amount = Column(Numeric(15, 2), nullable=False, default=0)
    sgst_amount = Column(Numeric(15, 2), nullable=False, default=0)
    line_total = Column(Numeric(15, 2), nullable=False)


class Order(Base, TenantMixin, TimestampMixin, DocumentAmountsMixin):
    __tablename__ = "orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    number = Column(String(50), nullable=False)
    party_id = Column(Uuid(as_uuid=True), ForeignKey("parties.id"), nullable=False, index=True)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.PLACED)
    order_date = Column(Date, nullable=False, default=date.today)
    delivery_date = Column(Date, nullable=True)
    # Se asigna al convertir el pedido en factura
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id", use_alter=True, name="fk_orders_invoice_id"), nullable=True)

    party = relationship("Party")
    line_items = relationship(
        "OrderLineItem", back_populates="order", order_by="OrderLineItem.position", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_order_tenant_number"),
    )


class OrderLineItem(Base, TimestampMixin, LineSnapshotMixin):
    __tablename__ = "order_line_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)

    order = relationship("Order", back_populates="line_items")


class Invoice(Base, TenantMixin, TimestampMixin, DocumentAmountsMixin):
    __tablename__ = "invoices"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    number = Column(String(50), nullable=False)
    party_id = Column(Uuid(as_uuid=True), ForeignKey("parties.id"), nullable=False, index=True)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.OPEN)
    issue_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=True)
    # Pedido de origen; NULL para ventas directas
    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=True, index=True)

    party = relationship("Party")
    line_items = relationship(
        "InvoiceLineItem", back_populates="invoice", order_by="InvoiceLineItem.position", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_invoice_tenant_number"),
    )


class InvoiceLineItem(Base, TimestampMixin, LineSnapshotMixin):
    __tablename__ = "invoice_line_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)

    invoice = relationship("Invoice", back_populates="line_items")


class DocumentSequence(Base, TenantMixin):
    """Consecutivo de numeración por empresa y tipo de documento"""
    __tablename__ = "document_sequences"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    kind = Column(String(20), nullable=False)  # order, invoice, receipt
    prefix = Column(String(10), nullable=False)
    current_number = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("tenant_id", "kind", name="uq_sequence_tenant_kind"),
    )
