"""
Servicio de recibos (pagos de dealers y clientes)

Valida la solicitud, numera el recibo y delega todo cambio de montos y saldos
a LedgerService.
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from uuid import UUID
import logging

from dairydesk.common.exceptions import ValidationError, ConflictError
from dairydesk.common.money import quantize_money
from dairydesk.modules.billing.models import Order, Invoice
from dairydesk.modules.billing.service import BillingService
from dairydesk.modules.parties.models import Party
from dairydesk.modules.parties.service import PartyService
from dairydesk.modules.receipts.ledger import LedgerService
from dairydesk.modules.receipts.models import Receipt, ReceiptStatus, PaymentMode
from dairydesk.modules.receipts.schemas import (
    ReceiptCreate, ReceiptUpdate, ReceiptFilters, ReceiptList, ReceiptInvoiceResult, ReceiptOut
)

logger = logging.getLogger(__name__)


class ReceiptService:
    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)
        self.billing = BillingService(db)

    def create_receipt(self, receipt_data: ReceiptCreate, tenant_id: UUID) -> Receipt:
        """
        Registrar un recibo contra un pedido o una factura

        Raises:
            ValidationError: monto <= 0 o recibo sin documento
            ConflictError: recibo vinculado a pedido y factura a la vez
            NotFoundError: parte o documento inexistente
        """
        if receipt_data.order_id and receipt_data.invoice_id:
            raise ConflictError("Un recibo no puede estar vinculado a un pedido y a una factura a la vez")
        if not receipt_data.order_id and not receipt_data.invoice_id:
            raise ValidationError("El recibo debe estar vinculado a un pedido o a una factura")
        if receipt_data.amount is None or quantize_money(receipt_data.amount) <= 0:
            raise ValidationError("El monto del recibo debe ser mayor a 0")

        try:
            party = PartyService(self.db).get_party(receipt_data.party_id, tenant_id)
            if receipt_data.order_id:
                self.billing.get_order(receipt_data.order_id, tenant_id)
            else:
                self.billing.get_invoice(receipt_data.invoice_id, tenant_id)

            receipt = Receipt(
                tenant_id=tenant_id,
                number=self.billing.generate_document_number("receipt", tenant_id),
                party_id=party.id,
                order_id=receipt_data.order_id,
                invoice_id=receipt_data.invoice_id,
                amount=quantize_money(receipt_data.amount),
                receipt_date=receipt_data.receipt_date,
                payment_mode=PaymentMode(receipt_data.payment_mode.value),
                reference=receipt_data.reference,
                notes=receipt_data.notes,
                status=ReceiptStatus.ACTIVE,
            )
            receipt = self.ledger.apply_receipt(receipt)
            self.db.refresh(receipt)
            return receipt

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating receipt: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creando recibo: {str(e)}"
            )

    def update_receipt(self, receipt_id: UUID, receipt_data: ReceiptUpdate, tenant_id: UUID) -> Receipt:
        """Editar un recibo activo; un cambio de monto mueve la diferencia en el ledger"""
        fields = receipt_data.model_dump(exclude={"amount"}, exclude_unset=True)
        if fields.get("payment_mode") is not None:
            fields["payment_mode"] = PaymentMode(fields["payment_mode"].value)
        receipt = self.ledger.edit_receipt(receipt_id, tenant_id, receipt_data.amount, **fields)
        self.db.refresh(receipt)
        return receipt

    def undo_receipt(self, receipt_id: UUID, tenant_id: UUID) -> Receipt:
        receipt = self.ledger.undo_receipt(receipt_id, tenant_id)
        self.db.refresh(receipt)
        return receipt

    def convert_receipt_to_invoice(self, receipt_id: UUID, tenant_id: UUID) -> ReceiptInvoiceResult:
        """
        Generar la factura del pedido de un recibo activo

        El recibo queda marcado como convertido y ya no se puede deshacer.

        Raises:
            ConflictError: recibo deshecho, ya vinculado a una factura, o pedido ya facturado
        """
        receipt = self.get_receipt(receipt_id, tenant_id)
        if receipt.status != ReceiptStatus.ACTIVE:
            raise ConflictError(f"El recibo {receipt.number} está deshecho")
        if not receipt.order_id:
            raise ConflictError(f"El recibo {receipt.number} ya está vinculado a una factura")

        def mutate(order: Order, party: Party) -> Invoice:
            locked = self.ledger.lock_receipt(receipt_id, tenant_id)
            if locked.status != ReceiptStatus.ACTIVE:
                raise ConflictError(f"El recibo {locked.number} está deshecho")
            invoice = self.billing.freeze_order(order, party)
            locked.converted_at = datetime.now(timezone.utc)
            logger.info(f"Receipt {locked.number} converted order {order.number} into {invoice.number}")
            return invoice

        invoice = self.ledger.update_atomically(Order, receipt.order_id, tenant_id, mutate)
        self.db.refresh(receipt)
        return ReceiptInvoiceResult(
            receipt=ReceiptOut.model_validate(receipt),
            invoice_id=invoice.id,
            invoice_number=invoice.number,
        )

    def get_receipt(self, receipt_id: UUID, tenant_id: UUID) -> Receipt:
        return self.ledger.get_receipt(receipt_id, tenant_id)

    def get_receipts(
        self,
        tenant_id: UUID,
        filters: ReceiptFilters,
        limit: int = 100,
        offset: int = 0
    ) -> ReceiptList:
        query = self.db.query(Receipt).filter(Receipt.tenant_id == tenant_id)

        if filters.party_id:
            query = query.filter(Receipt.party_id == filters.party_id)
        if filters.payment_mode:
            query = query.filter(Receipt.payment_mode == PaymentMode(filters.payment_mode.value))
        if filters.status:
            query = query.filter(Receipt.status == ReceiptStatus(filters.status.value))
        if filters.start_date:
            query = query.filter(Receipt.receipt_date >= filters.start_date)
        if filters.end_date:
            query = query.filter(Receipt.receipt_date <= filters.end_date)

        total = query.count()
        receipts = query.order_by(Receipt.receipt_date.desc(), Receipt.number.desc()).offset(offset).limit(limit).all()
        return ReceiptList(items=receipts, total=total, limit=limit, offset=offset)
