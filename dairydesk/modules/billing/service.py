"""
Orquestación de pedidos y facturas

Flujo de creación (pedido o factura directa):
1. Resolver precio y GST de cada línea (PricingResolver)
2. Calcular líneas y totales (LineItemCalculator + DocumentTotalsAggregator);
   cualquier error de cálculo ocurre antes de escribir
3. Persistir documento + snapshots de línea
4. Cargar el total al saldo de la parte (LedgerService), en la misma transacción

La factura desde pedido congela los totales y snapshots ya calculados del
pedido, sin volver a resolver precios, y no vuelve a cargar el saldo.
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from dairydesk.core.config import settings
from dairydesk.common.exceptions import NotFoundError, ConflictError, ValidationError
from dairydesk.common.money import to_decimal
from dairydesk.modules.billing.calculator import LineItemCalculator
from dairydesk.modules.billing.models import (
    Order, OrderLineItem, Invoice, InvoiceLineItem, DocumentSequence,
    OrderStatus, InvoiceStatus, PaymentStatus, AdjustmentOperation
)
from dairydesk.modules.billing.schemas import (
    OrderCreate, InvoiceCreate, InvoiceFromOrder, DocumentCreate, DocumentTotals,
    GlobalDiscount, CustomAdjustment, DiscountType, LineAmounts,
    DocumentFilters, OrderFilters, InvoiceFilters, OrderList, InvoiceList
)
from dairydesk.modules.billing.totals import DocumentTotalsAggregator
from dairydesk.modules.parties.models import Party, PartyType
from dairydesk.modules.parties.service import PartyService
from dairydesk.modules.pricing.models import DiscountType as ModelDiscountType
from dairydesk.modules.pricing.resolver import PricingResolver
from dairydesk.modules.products.service import ProductService
from dairydesk.modules.receipts.ledger import LedgerService

logger = logging.getLogger(__name__)

# Campos del snapshot que se copian tal cual del pedido a la factura
SNAPSHOT_FIELDS = (
    "position", "product_id", "name", "sku", "packaging_type", "packaging_size_value",
    "packaging_size_unit", "units_per_package", "tax_method", "quantity", "unit_price",
    "price_source", "discount_type", "discount_value", "igst_rate", "cgst_rate", "sgst_rate",
    "line_subtotal", "discount_amount", "taxable_value", "tax_amount", "igst_amount",
    "cgst_amount", "sgst_amount", "line_total",
)

# Resumen de precios que se congela del pedido a la factura
FROZEN_TOTAL_FIELDS = (
    "subtotal", "item_discount", "tax_total", "igst_total", "cgst_total", "sgst_total",
    "grand_total", "global_discount_type", "global_discount_value", "global_discount_amount",
    "adjustment_text", "adjustment_amount", "adjustment_type", "adjustment_operation",
    "adjustment_applied", "total",
)


def sequence_prefix(kind: str) -> str:
    return {
        "order": settings.ORDER_NUMBER_PREFIX,
        "invoice": settings.INVOICE_NUMBER_PREFIX,
        "receipt": settings.RECEIPT_NUMBER_PREFIX,
    }[kind]


class BillingService:
    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)

    def generate_document_number(self, kind: str, tenant_id: UUID) -> str:
        """Generar número secuencial por empresa y tipo de documento (ej. ORD000001)"""
        sequence = self.db.query(DocumentSequence).filter(
            DocumentSequence.tenant_id == tenant_id,
            DocumentSequence.kind == kind
        ).with_for_update().first()

        if not sequence:
            sequence = DocumentSequence(
                tenant_id=tenant_id,
                kind=kind,
                prefix=sequence_prefix(kind),
                current_number=0
            )
            self.db.add(sequence)
            self.db.flush()

        sequence.current_number += 1
        self.db.flush()
        return f"{sequence.prefix}{sequence.current_number:06d}"

    # ===== Cálculo =====

    def build_lines(self, party: Party, data: DocumentCreate, tenant_id: UUID, line_model) -> Tuple[list, list]:
        """Resolver precios y calcular cada línea; no escribe en la base de datos"""
        resolver = PricingResolver(self.db)
        product_service = ProductService(self.db)
        rows, amounts = [], []

        for position, item in enumerate(data.items, start=1):
            product = product_service.get_product(item.product_id, tenant_id)
            if not product.is_active:
                raise ValidationError(f"El producto {product.sku} está inactivo")

            resolved = resolver.resolve(tenant_id, party, product.id)
            line = LineItemCalculator.calculate(
                resolved.unit_price,
                item.quantity,
                resolved.breakdown,
                tax_method=resolved.tax_method,
                discount_type=item.discount_type,
                discount_value=item.discount_value,
            )
            amounts.append(line)
            rows.append(line_model(
                position=position,
                product_id=product.id,
                name=product.name,
                sku=product.sku,
                packaging_type=product.packaging_type.value if product.packaging_type else None,
                packaging_size_value=product.packaging_size_value,
                packaging_size_unit=product.packaging_size_unit,
                units_per_package=product.units_per_package,
                tax_method=product.tax_method,
                quantity=item.quantity,
                unit_price=resolved.unit_price,
                price_source=resolved.source_priority.value,
                discount_type=ModelDiscountType(item.discount_type.value),
                discount_value=item.discount_value,
                igst_rate=resolved.breakdown.igst,
                cgst_rate=resolved.breakdown.cgst,
                sgst_rate=resolved.breakdown.sgst,
                **line.model_dump()
            ))
        return rows, amounts

    def default_global_discount(self, party: Party, requested: Optional[GlobalDiscount]) -> Optional[GlobalDiscount]:
        """El descuento estándar del cliente se aplica como descuento global si no se envía otro"""
        if requested is not None:
            return requested
        if party.party_type == PartyType.CUSTOMER and to_decimal(party.discount_percentage) > 0:
            return GlobalDiscount(type=DiscountType.PERCENTAGE, value=party.discount_percentage)
        return None

    def compute_totals(self, party: Party, data: DocumentCreate, lines: List[LineAmounts]) -> DocumentTotals:
        return DocumentTotalsAggregator.aggregate(
            lines,
            global_discount=self.default_global_discount(party, data.global_discount),
            custom_adjustment=data.custom_adjustment,
        )

    def _apply_totals(self, document, totals: DocumentTotals, has_global_discount: bool):
        document.subtotal = totals.subtotal
        document.item_discount = totals.item_discount
        document.tax_total = totals.tax_breakdown.total
        document.igst_total = totals.tax_breakdown.igst
        document.cgst_total = totals.tax_breakdown.cgst
        document.sgst_total = totals.tax_breakdown.sgst
        document.grand_total = totals.grand_total

        discount = totals.global_discount
        document.global_discount_type = ModelDiscountType(discount.type.value) if has_global_discount else None
        document.global_discount_value = discount.value
        document.global_discount_amount = discount.amount

        adjustment = totals.custom_adjustment
        document.adjustment_text = adjustment.text
        document.adjustment_amount = adjustment.amount
        document.adjustment_type = ModelDiscountType(adjustment.type.value)
        document.adjustment_operation = AdjustmentOperation(adjustment.operation.value)
        document.adjustment_applied = adjustment.applied_amount

        document.total = totals.total
        document.paid_amount = 0
        document.due_amount = totals.total

    # ===== Pedidos =====

    def create_order(self, order_data: OrderCreate, tenant_id: UUID) -> Order:
        """
        Crear pedido: resuelve precios, calcula totales y carga el total al saldo

        Raises:
            NotFoundError: parte o producto inexistente
            ValidationError: cantidades, descuentos o total final inválidos; límite
                de crédito superado con ENFORCE_CREDIT_LIMIT
        """
        try:
            party = PartyService(self.db).get_party(order_data.party_id, tenant_id)
            rows, amounts = self.build_lines(party, order_data, tenant_id, OrderLineItem)
            totals = self.compute_totals(party, order_data, amounts)
            has_discount = self.default_global_discount(party, order_data.global_discount) is not None

            order = Order(
                tenant_id=tenant_id,
                number=self.generate_document_number("order", tenant_id),
                party_id=party.id,
                status=OrderStatus.PLACED,
                order_date=order_data.order_date,
                delivery_date=order_data.delivery_date,
                notes=order_data.notes,
            )
            self._apply_totals(order, totals, has_discount)
            order.line_items = rows
            self.db.add(order)
            self.db.flush()

            self.ledger.post_charge(Order, order.id, tenant_id, check_credit=True)
            self.db.refresh(order)
            logger.info(f"Created order {order.number} for {party.code}: total={order.total}")
            return order

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating order: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creando pedido: {str(e)}"
            )

    def get_order(self, order_id: UUID, tenant_id: UUID) -> Order:
        order = self.db.query(Order).filter(
            Order.id == order_id,
            Order.tenant_id == tenant_id
        ).first()
        if not order:
            raise NotFoundError(f"Pedido {order_id} no encontrado")
        return order

    def cancel_order(self, order_id: UUID, tenant_id: UUID, reason: str = "") -> Order:
        """Anular un pedido sin recibos activos, reversando su cargo al saldo"""
        self.get_order(order_id, tenant_id)

        def mutate(order: Order, party: Party) -> Order:
            if order.status == OrderStatus.CANCELLED:
                raise ConflictError(f"El pedido {order.number} ya está anulado")
            if order.status == OrderStatus.INVOICED:
                raise ConflictError(f"El pedido {order.number} ya fue facturado")

            self.ledger.reverse_charge(order, party, reason or "sin motivo")
            order.status = OrderStatus.CANCELLED
            note = f"[ANULADO] {reason}" if reason else "[ANULADO]"
            order.notes = f"{order.notes}\n\n{note}" if order.notes else note
            logger.info(f"Order {order.number} cancelled")
            return order

        order = self.ledger.update_atomically(Order, order_id, tenant_id, mutate)
        self.db.refresh(order)
        return order

    # ===== Facturas =====

    def create_invoice(self, invoice_data: InvoiceCreate, tenant_id: UUID) -> Invoice:
        """Factura directa (venta sin pedido): mismo cálculo que un pedido y cargo al saldo"""
        try:
            party = PartyService(self.db).get_party(invoice_data.party_id, tenant_id)
            rows, amounts = self.build_lines(party, invoice_data, tenant_id, InvoiceLineItem)
            totals = self.compute_totals(party, invoice_data, amounts)
            has_discount = self.default_global_discount(party, invoice_data.global_discount) is not None

            invoice = Invoice(
                tenant_id=tenant_id,
                number=self.generate_document_number("invoice", tenant_id),
                party_id=party.id,
                status=InvoiceStatus.OPEN,
                issue_date=invoice_data.issue_date,
                due_date=invoice_data.due_date,
                notes=invoice_data.notes,
            )
            self._apply_totals(invoice, totals, has_discount)
            invoice.line_items = rows
            self.db.add(invoice)
            self.db.flush()

            self.ledger.post_charge(Invoice, invoice.id, tenant_id)
            self.db.refresh(invoice)
            logger.info(f"Created direct invoice {invoice.number} for {party.code}: total={invoice.total}")
            return invoice

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating invoice: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creando factura: {str(e)}"
            )

    def freeze_order(
        self,
        order: Order,
        party: Party,
        issue_date: Optional[date] = None,
        due_date: Optional[date] = None
    ) -> Invoice:
        """
        Congelar un pedido bloqueado en una factura (dentro de una transacción abierta)

        Copia snapshots y totales sin volver a resolver precios.
        """
        if order.status == OrderStatus.CANCELLED:
            raise ConflictError(f"El pedido {order.number} está anulado")
        if order.status == OrderStatus.INVOICED or order.invoice_id:
            raise ConflictError(f"El pedido {order.number} ya fue facturado")

        invoice = Invoice(
            tenant_id=order.tenant_id,
            number=self.generate_document_number("invoice", order.tenant_id),
            party_id=party.id,
            status=InvoiceStatus.OPEN,
            issue_date=issue_date or date.today(),
            due_date=due_date,
            notes=order.notes,
        )
        for field in FROZEN_TOTAL_FIELDS:
            setattr(invoice, field, getattr(order, field))
        invoice.line_items = [
            InvoiceLineItem(**{field: getattr(line, field) for field in SNAPSHOT_FIELDS})
            for line in order.line_items
        ]
        self.db.add(invoice)
        self.db.flush()

        self.ledger.link_order_payments(order, invoice)
        logger.info(f"Froze order {order.number} into invoice {invoice.number}: total={invoice.total}")
        return invoice

    def create_invoice_from_order(self, data: InvoiceFromOrder, tenant_id: UUID) -> Invoice:
        self.get_order(data.order_id, tenant_id)
        invoice = self.ledger.update_atomically(
            Order, data.order_id, tenant_id,
            lambda order, party: self.freeze_order(order, party, data.issue_date, data.due_date)
        )
        self.db.refresh(invoice)
        return invoice

    def get_invoice(self, invoice_id: UUID, tenant_id: UUID) -> Invoice:
        invoice = self.db.query(Invoice).filter(
            Invoice.id == invoice_id,
            Invoice.tenant_id == tenant_id
        ).first()
        if not invoice:
            raise NotFoundError(f"Factura {invoice_id} no encontrada")
        return invoice

    def void_invoice(self, invoice_id: UUID, tenant_id: UUID, reason: str = "") -> Invoice:
        """
        Anular una factura

        - Factura directa: reversa su cargo al saldo (sin recibos activos)
        - Factura desde pedido: el pedido vuelve a quedar abierto con sus recibos
          y el saldo no cambia

        Raises:
            ConflictError: factura ya anulada o con recibos activos propios
        """
        self.get_invoice(invoice_id, tenant_id)

        def mutate(invoice: Invoice, party: Party) -> Invoice:
            if invoice.status == InvoiceStatus.VOID:
                raise ConflictError(f"La factura {invoice.number} ya está anulada")

            if invoice.order_id:
                self.ledger.unlink_order(invoice)
            else:
                self.ledger.reverse_charge(invoice, party, reason or "sin motivo")

            invoice.status = InvoiceStatus.VOID
            note = f"[ANULADA] {reason}" if reason else "[ANULADA]"
            invoice.notes = f"{invoice.notes}\n\n{note}" if invoice.notes else note
            self.ledger.recompute_payment(invoice)
            logger.info(f"Invoice {invoice.number} voided")
            return invoice

        invoice = self.ledger.update_atomically(Invoice, invoice_id, tenant_id, mutate)
        self.db.refresh(invoice)
        return invoice

    # ===== Listados =====

    def _filter_documents(self, query, model, date_column, filters: DocumentFilters):
        if filters.party_id:
            query = query.filter(model.party_id == filters.party_id)
        if filters.payment_status:
            query = query.filter(model.payment_status == PaymentStatus(filters.payment_status.value))
        if filters.start_date:
            query = query.filter(date_column >= filters.start_date)
        if filters.end_date:
            query = query.filter(date_column <= filters.end_date)
        return query

    def get_orders(self, tenant_id: UUID, filters: OrderFilters, limit: int = 100, offset: int = 0) -> OrderList:
        query = self.db.query(Order).filter(Order.tenant_id == tenant_id)
        query = self._filter_documents(query, Order, Order.order_date, filters)
        if filters.status:
            query = query.filter(Order.status == OrderStatus(filters.status.value))

        total = query.count()
        orders = query.order_by(Order.order_date.desc(), Order.number.desc()).offset(offset).limit(limit).all()
        return OrderList(items=orders, total=total, limit=limit, offset=offset)

    def get_invoices(self, tenant_id: UUID, filters: InvoiceFilters, limit: int = 100, offset: int = 0) -> InvoiceList:
        query = self.db.query(Invoice).filter(Invoice.tenant_id == tenant_id)
        query = self._filter_documents(query, Invoice, Invoice.issue_date, filters)
        if filters.status:
            query = query.filter(Invoice.status == InvoiceStatus(filters.status.value))

        total = query.count()
        invoices = query.order_by(Invoice.issue_date.desc(), Invoice.number.desc()).offset(offset).limit(limit).all()
        return InvoiceList(items=invoices, total=total, limit=limit, offset=offset)

    # ===== Totales =====

    def document_totals(self, document) -> DocumentTotals:
        """Totales recalculados desde los snapshots guardados, con pagado y resumen físico"""
        global_discount = None
        if document.global_discount_type is not None:
            global_discount = GlobalDiscount(
                type=DiscountType(document.global_discount_type.value),
                value=document.global_discount_value
            )
        adjustment = CustomAdjustment(
            text=document.adjustment_text,
            amount=document.adjustment_amount,
            type=DiscountType(document.adjustment_type.value),
            operation=document.adjustment_operation.value,
        )
        totals = DocumentTotalsAggregator.aggregate(
            document.line_items,
            global_discount=global_discount,
            custom_adjustment=adjustment,
            paid_amount=document.paid_amount,
        )
        totals.physical = DocumentTotalsAggregator.physical_summary(document.line_items)
        return totals

    def get_order_totals(self, order_id: UUID, tenant_id: UUID) -> DocumentTotals:
        return self.document_totals(self.get_order(order_id, tenant_id))

    def get_invoice_totals(self, invoice_id: UUID, tenant_id: UUID) -> DocumentTotals:
        return self.document_totals(self.get_invoice(invoice_id, tenant_id))
