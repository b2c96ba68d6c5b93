"""
Motor de saldos (ledger) para pedidos, facturas y recibos

Máquina de estados de pago por documento:

    pending (paid = 0) -> partial (0 < paid < total) -> completed (paid >= total)

paid_amount nunca se acumula: siempre se recalcula como la suma de los recibos
activos del documento. Una factura generada desde un pedido también cuenta los
recibos activos de su pedido de origen.

Convención del saldo de la parte (current_balance):
- Un pedido o factura directa suma su total (débito)
- Un recibo resta su monto (crédito)
- Deshacer un recibo suma exactamente el monto restado

Cada operación pública corre en una sola transacción: bloquea el documento y
la parte (SELECT ... FOR UPDATE), aplica todos los cambios y hace un único
commit. Cualquier error hace rollback completo.

Orden de bloqueo, igual en todos los caminos: pedido, factura, parte, recibo.
"""

from fastapi import HTTPException, status
from sqlalchemy import func, or_, text
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, TypeVar, Union
from uuid import UUID
import logging

from dairydesk.core.config import settings
from dairydesk.common.exceptions import ValidationError, NotFoundError, ConflictError, ConsistencyError
from dairydesk.common.money import to_decimal, quantize_money, ZERO
from dairydesk.modules.billing.models import Order, Invoice, OrderStatus, InvoiceStatus, PaymentStatus
from dairydesk.modules.billing.totals import DocumentTotalsAggregator
from dairydesk.modules.parties.models import Party, PartyTransaction, TransactionKind
from dairydesk.modules.receipts.models import Receipt, ReceiptStatus
from dairydesk.modules.receipts.schemas import LedgerAuditReport, LedgerDrift

logger = logging.getLogger(__name__)

T = TypeVar("T")
Document = Union[Order, Invoice]


class LedgerService:
    def __init__(self, db: Session):
        self.db = db

    # ===== Primitivas transaccionales =====

    def update_atomically(
        self,
        model,
        document_id: UUID,
        tenant_id: UUID,
        mutator: Callable[[Document, Party], T]
    ) -> T:
        """
        Ejecutar mutator(documento, parte) con ambas filas bloqueadas y un único commit

        Con model=Party se bloquea solo la parte y el mutator la recibe dos veces.

        Raises:
            NotFoundError: si el documento no existe en el tenant
            HTTPException 500: error inesperado (con rollback completo)
        """
        try:
            self.db.flush()
            self._set_lock_timeout()
            document = self._lock_document(model, document_id, tenant_id)
            if document is None:
                raise NotFoundError(f"{model.__name__} {document_id} no encontrado")
            party = document if isinstance(document, Party) else self._lock(Party, document.party_id, tenant_id)

            result = mutator(document, party)

            self.db.commit()
            return result

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Ledger transaction failed for {model.__name__} {document_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error actualizando el ledger: {str(e)}"
            )

    def adjust_balance(
        self,
        party: Party,
        delta,
        description: str,
        reference_type: Optional[str] = None,
        reference_id: Optional[UUID] = None
    ) -> Optional[PartyTransaction]:
        """Mover el saldo de una parte bloqueada y registrar el movimiento (sin commit)"""
        delta = quantize_money(delta)
        if delta == 0:
            return None

        party.current_balance = quantize_money(party.current_balance) + delta

        last_entry = self.db.query(func.max(PartyTransaction.entry_number)).filter(
            PartyTransaction.party_id == party.id
        ).scalar()

        entry = PartyTransaction(
            tenant_id=party.tenant_id,
            party_id=party.id,
            entry_number=(last_entry or 0) + 1,
            kind=TransactionKind.DEBIT if delta > 0 else TransactionKind.CREDIT,
            amount=abs(delta),
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
            balance_after=party.current_balance,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def post_adjustment(self, party_id: UUID, tenant_id: UUID, delta, description: str) -> Party:
        """Crédito o débito manual al saldo de una parte (ej. nota de crédito, corrección)"""
        def mutate(_, party: Party) -> Party:
            if self.adjust_balance(party, delta, description, "adjustment") is None:
                raise ValidationError("El monto del ajuste debe ser mayor a 0")
            logger.info(f"Manual adjustment of {quantize_money(delta)} on {party.code} (balance {party.current_balance})")
            return party

        return self.update_atomically(Party, party_id, tenant_id, mutate)

    def recompute_payment(self, document: Document) -> Document:
        """
        Recalcular paid_amount, due_amount y payment_status desde los recibos activos

        Raises:
            ConsistencyError: si el pagado resulta negativo, o si supera el total
                sin que ALLOW_OVERPAYMENT esté habilitado
        """
        self.db.flush()
        paid = self.paid_from_receipts(document)
        total = quantize_money(document.total)

        if paid < 0:
            raise ConsistencyError(
                f"El monto pagado de {document.number} resultó negativo ({paid})"
            )
        if total - paid < 0 and not settings.ALLOW_OVERPAYMENT:
            raise ConsistencyError(
                f"El saldo pendiente de {document.number} resultó negativo ({total - paid})"
            )

        document.paid_amount = paid
        document.due_amount = DocumentTotalsAggregator.due_amount(total, paid)
        document.payment_status = self.status_for(total, paid)
        return document

    def paid_from_receipts(self, document: Document) -> Decimal:
        paid = self.db.query(func.coalesce(func.sum(Receipt.amount), 0)).filter(
            Receipt.tenant_id == document.tenant_id,
            Receipt.status == ReceiptStatus.ACTIVE,
            self._receipts_of(document)
        ).scalar()
        return quantize_money(paid)

    @staticmethod
    def status_for(total, paid) -> PaymentStatus:
        return PaymentStatus(DocumentTotalsAggregator.payment_status(total, paid).value)

    # ===== Cargos de documentos =====

    def charge(self, document: Document, party: Party, check_credit: bool = False) -> Document:
        """Cargar el total del documento al saldo de la parte (dentro de una transacción abierta)"""
        if check_credit:
            self._check_credit_limit(party, document.total)
        self.recompute_payment(document)
        kind = "order" if isinstance(document, Order) else "invoice"
        self.adjust_balance(party, document.total, f"Cargo {document.number}", kind, document.id)
        logger.info(
            f"Charged {document.number} to {party.code}: {document.total} "
            f"(balance {party.current_balance})"
        )
        return document

    def post_charge(self, model, document_id: UUID, tenant_id: UUID, check_credit: bool = False) -> Document:
        return self.update_atomically(
            model, document_id, tenant_id,
            lambda document, party: self.charge(document, party, check_credit)
        )

    def reverse_charge(self, document: Document, party: Party, reason: str) -> Document:
        """Reversar el cargo de un documento sin recibos activos"""
        if self.paid_from_receipts(document) > 0:
            raise ConflictError(f"{document.number} tiene recibos activos; deshágalos antes de anular")
        kind = "order" if isinstance(document, Order) else "invoice"
        self.adjust_balance(party, -to_decimal(document.total), f"Anulación {document.number}: {reason}", kind, document.id)
        logger.info(f"Reversed charge of {document.number}: {document.total} (balance {party.current_balance})")
        return document

    def link_order_payments(self, order: Order, invoice: Invoice) -> Invoice:
        """
        Asociar la factura generada a su pedido: la factura hereda los recibos
        activos del pedido en su paid_amount. El saldo de la parte no cambia.
        """
        invoice.order_id = order.id
        order.invoice_id = invoice.id
        order.status = OrderStatus.INVOICED
        self.db.flush()
        self.recompute_payment(order)
        self.recompute_payment(invoice)
        logger.info(
            f"Linked {order.number} -> {invoice.number} with {invoice.paid_amount} already paid"
        )
        return invoice

    def unlink_order(self, invoice: Invoice) -> Order:
        """
        Desvincular una factura de su pedido (anulación de la factura)

        El pedido vuelve a quedar abierto con sus recibos; los recibos que
        generaron la factura dejan de estar marcados como convertidos. El saldo
        de la parte no cambia: el cargo sigue siendo el del pedido.

        Raises:
            ConflictError: si la factura tiene recibos activos propios
        """
        own_receipts = self.db.query(func.count(Receipt.id)).filter(
            Receipt.invoice_id == invoice.id,
            Receipt.status == ReceiptStatus.ACTIVE
        ).scalar()
        if own_receipts:
            raise ConflictError(f"{invoice.number} tiene recibos activos; deshágalos antes de anular")

        order = self.db.get(Order, invoice.order_id)
        order.invoice_id = None
        order.status = OrderStatus.PLACED
        invoice.order_id = None

        converted = self.db.query(Receipt).filter(
            Receipt.order_id == order.id,
            Receipt.converted_at.isnot(None)
        ).with_for_update().all()
        for receipt in converted:
            receipt.converted_at = None

        self.db.flush()
        self.recompute_payment(order)
        logger.info(f"Unlinked {invoice.number} from {order.number}; order reopened with {order.paid_amount} paid")
        return order

    # ===== Recibos =====

    def apply_receipt(self, receipt: Receipt) -> Receipt:
        """
        Registrar un recibo nuevo: sube el pagado del documento y baja el saldo de la parte

        Raises:
            ValidationError: monto <= 0, parte distinta a la del documento o sobrepago
            ConflictError: vínculo a pedido y factura a la vez, o documento no pagable
        """
        model, document_id = self._linked_document(receipt)
        amount = self._validate_amount(receipt.amount)

        def mutate(document: Document, party: Party) -> Receipt:
            if document.party_id != receipt.party_id:
                raise ValidationError(f"El recibo y {document.number} pertenecen a partes distintas")
            self._ensure_payable(document)
            self._check_overpayment(document, amount)

            receipt.amount = amount
            receipt.status = ReceiptStatus.ACTIVE
            self.db.add(receipt)
            self.db.flush()

            self._recompute_with_invoice(document)
            self.adjust_balance(party, -amount, f"Recibo {receipt.number}", "receipt", receipt.id)
            logger.info(
                f"Applied receipt {receipt.number} of {amount} to {document.number}: "
                f"paid={document.paid_amount} due={document.due_amount} "
                f"status={document.payment_status.value} balance={party.current_balance}"
            )
            return receipt

        return self.update_atomically(model, document_id, receipt.tenant_id, mutate)

    def edit_receipt(self, receipt_id: UUID, tenant_id: UUID, new_amount=None, **fields) -> Receipt:
        """Editar un recibo activo; la diferencia de monto se aplica al documento y al saldo"""
        receipt = self.get_receipt(receipt_id, tenant_id)
        model, document_id = self._linked_document(receipt)
        if new_amount is not None:
            new_amount = self._validate_amount(new_amount)

        def mutate(document: Document, party: Party) -> Receipt:
            locked = self.lock_receipt(receipt_id, tenant_id)
            if locked.status != ReceiptStatus.ACTIVE:
                raise ConflictError(f"El recibo {locked.number} está deshecho y no se puede editar")

            for field, value in fields.items():
                if value is not None:
                    setattr(locked, field, value)

            delta = ZERO
            if new_amount is not None:
                delta = new_amount - quantize_money(locked.amount)
            if delta == 0:
                self.db.flush()
                return locked

            if delta > 0:
                self._check_overpayment(document, delta)
                if isinstance(document, Order) and document.invoice_id:
                    self._check_overpayment(self.db.get(Invoice, document.invoice_id), delta)
            locked.amount = new_amount
            self.db.flush()

            self._recompute_with_invoice(document)
            self.adjust_balance(party, -delta, f"Ajuste recibo {locked.number}", "receipt", locked.id)
            logger.info(
                f"Edited receipt {locked.number} by {delta}: {document.number} "
                f"paid={document.paid_amount} balance={party.current_balance}"
            )
            return locked

        return self.update_atomically(model, document_id, tenant_id, mutate)

    def undo_receipt(self, receipt_id: UUID, tenant_id: UUID) -> Receipt:
        """
        Deshacer un recibo activo, exactamente una vez

        Raises:
            ConflictError: recibo ya deshecho o que generó una factura
        """
        receipt = self.get_receipt(receipt_id, tenant_id)
        model, document_id = self._linked_document(receipt)

        def mutate(document: Document, party: Party) -> Receipt:
            locked = self.lock_receipt(receipt_id, tenant_id)
            if locked.status != ReceiptStatus.ACTIVE:
                raise ConflictError(f"El recibo {locked.number} ya fue deshecho")
            if locked.converted_at is not None:
                raise ConflictError(
                    f"El recibo {locked.number} generó una factura y no se puede deshacer"
                )

            amount = quantize_money(locked.amount)
            locked.status = ReceiptStatus.UNDONE
            locked.undone_at = datetime.now(timezone.utc)
            self.db.flush()

            self._recompute_with_invoice(document)
            self.adjust_balance(party, amount, f"Reverso recibo {locked.number}", "receipt", locked.id)
            logger.info(
                f"Undid receipt {locked.number} of {amount}: {document.number} "
                f"paid={document.paid_amount} status={document.payment_status.value} "
                f"balance={party.current_balance}"
            )
            return locked

        return self.update_atomically(model, document_id, tenant_id, mutate)

    # ===== Auditoría =====

    def audit(self, tenant_id: UUID) -> LedgerAuditReport:
        """Comparar montos guardados contra los recibos activos y el historial de saldos"""
        report = LedgerAuditReport(tenant_id=tenant_id)

        for model, entity in ((Order, "order"), (Invoice, "invoice")):
            for document in self.db.query(model).filter(model.tenant_id == tenant_id).all():
                report.documents_checked += 1
                paid = self.paid_from_receipts(document)
                total = quantize_money(document.total)
                expected = {
                    "paid_amount": paid,
                    "due_amount": max(total - paid, ZERO),
                    "payment_status": self.status_for(total, paid).value,
                }
                stored = {
                    "paid_amount": quantize_money(document.paid_amount),
                    "due_amount": quantize_money(document.due_amount),
                    "payment_status": document.payment_status.value,
                }
                for field, value in expected.items():
                    if stored[field] != value:
                        report.drifts.append(LedgerDrift(
                            entity=entity, entity_id=document.id, reference=document.number,
                            field=field, stored=str(stored[field]), expected=str(value)
                        ))

        for party in self.db.query(Party).filter(Party.tenant_id == tenant_id).all():
            report.parties_checked += 1
            entries = self.db.query(PartyTransaction).filter(
                PartyTransaction.party_id == party.id
            ).order_by(PartyTransaction.entry_number).all()
            expected = ZERO
            for entry in entries:
                signed = to_decimal(entry.amount)
                expected += signed if entry.kind == TransactionKind.DEBIT else -signed
            if quantize_money(party.current_balance) != quantize_money(expected):
                report.drifts.append(LedgerDrift(
                    entity="party", entity_id=party.id, reference=party.code,
                    field="current_balance", stored=str(quantize_money(party.current_balance)),
                    expected=str(quantize_money(expected))
                ))

        if report.drifts:
            logger.warning(f"Ledger audit for tenant {tenant_id} found {len(report.drifts)} drift(s)")
        else:
            logger.info(
                f"Ledger audit for tenant {tenant_id} OK: {report.documents_checked} documents, "
                f"{report.parties_checked} parties"
            )
        return report

    # ===== Helpers =====

    def _set_lock_timeout(self):
        if self.db.get_bind().dialect.name == "postgresql":
            self.db.execute(text(f"SET LOCAL lock_timeout = {int(settings.LEDGER_LOCK_TIMEOUT_MS)}"))

    def _lock(self, model, entity_id: UUID, tenant_id: UUID):
        return self.db.query(model).filter(
            model.id == entity_id,
            model.tenant_id == tenant_id
        ).with_for_update().populate_existing().first()

    def _lock_document(self, model, document_id: UUID, tenant_id: UUID):
        """Bloquear el documento junto con su pedido o factura vinculada, siempre pedido antes que factura"""
        if model is Invoice:
            order_id = self.db.query(Invoice.order_id).filter(
                Invoice.id == document_id,
                Invoice.tenant_id == tenant_id
            ).scalar()
            if order_id:
                self._lock(Order, order_id, tenant_id)
            return self._lock(Invoice, document_id, tenant_id)

        document = self._lock(model, document_id, tenant_id)
        if isinstance(document, Order) and document.invoice_id:
            self._lock(Invoice, document.invoice_id, tenant_id)
        return document

    def lock_receipt(self, receipt_id: UUID, tenant_id: UUID) -> Receipt:
        receipt = self._lock(Receipt, receipt_id, tenant_id)
        if receipt is None:
            raise NotFoundError(f"Recibo {receipt_id} no encontrado")
        return receipt

    def get_receipt(self, receipt_id: UUID, tenant_id: UUID) -> Receipt:
        receipt = self.db.query(Receipt).filter(
            Receipt.id == receipt_id,
            Receipt.tenant_id == tenant_id
        ).first()
        if not receipt:
            raise NotFoundError(f"Recibo {receipt_id} no encontrado")
        return receipt

    def _linked_document(self, receipt: Receipt):
        if receipt.order_id and receipt.invoice_id:
            raise ConflictError("Un recibo no puede estar vinculado a un pedido y a una factura a la vez")
        if receipt.order_id:
            return Order, receipt.order_id
        if receipt.invoice_id:
            return Invoice, receipt.invoice_id
        raise ValidationError("El recibo debe estar vinculado a un pedido o a una factura")

    def _validate_amount(self, amount) -> Decimal:
        value = quantize_money(amount)
        if value <= 0:
            raise ValidationError("El monto del recibo debe ser mayor a 0")
        return value

    def _receipts_of(self, document: Document):
        if isinstance(document, Order):
            return Receipt.order_id == document.id
        if document.order_id:
            return or_(Receipt.invoice_id == document.id, Receipt.order_id == document.order_id)
        return Receipt.invoice_id == document.id

    def _ensure_payable(self, document: Document):
        if isinstance(document, Order):
            if document.status == OrderStatus.CANCELLED:
                raise ConflictError(f"El pedido {document.number} está anulado")
            if document.status == OrderStatus.INVOICED:
                raise ConflictError(
                    f"El pedido {document.number} ya fue facturado; registre el recibo contra la factura"
                )
        elif document.status == InvoiceStatus.VOID:
            raise ConflictError(f"La factura {document.number} está anulada")

    def _check_overpayment(self, document: Document, additional: Decimal):
        if settings.ALLOW_OVERPAYMENT:
            return
        self.db.flush()
        projected = self.paid_from_receipts(document) + additional
        total = quantize_money(document.total)
        if projected > total:
            raise ValidationError(
                f"El pago excede el saldo pendiente de {document.number} "
                f"({total - self.paid_from_receipts(document)})"
            )

    def _check_credit_limit(self, party: Party, amount):
        limit = quantize_money(party.credit_limit)
        if limit <= 0:
            return
        projected = quantize_money(party.current_balance) + quantize_money(amount)
        if projected <= limit:
            return
        message = f"{party.code} supera su límite de crédito: saldo proyectado {projected} > {limit}"
        if settings.ENFORCE_CREDIT_LIMIT:
            raise ValidationError(message)
        logger.warning(message)

    def _recompute_with_invoice(self, document: Document):
        """Recalcular el documento y, si es un pedido facturado, también su factura"""
        self.recompute_payment(document)
        if isinstance(document, Order) and document.invoice_id:
            invoice = self.db.get(Invoice, document.invoice_id)
            if invoice is not None:
                self.recompute_payment(invoice)
