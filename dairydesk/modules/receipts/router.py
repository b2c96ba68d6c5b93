from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
from datetime import date

from dairydesk.database.database import get_db
from dairydesk.common.middleware import get_tenant_id
from dairydesk.common.exceptions import ValidationError
from dairydesk.modules.receipts.service import ReceiptService
from dairydesk.modules.receipts.schemas import (
    ReceiptCreate, ReceiptUpdate, ReceiptOut, ReceiptList, ReceiptFilters,
    ReceiptInvoiceResult, PaymentMode, ReceiptStatus
)

router = APIRouter(prefix="/receipts", tags=["Receipts"])


@router.post("/", response_model=ReceiptOut, status_code=status.HTTP_201_CREATED)
def create_receipt(
    receipt_data: ReceiptCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """
    Registrar un recibo contra un pedido o una factura (nunca ambos)

    Actualiza el pagado y el estado del documento y reduce el saldo de la parte.
    """
    return ReceiptService(db).create_receipt(receipt_data, tenant_id)


@router.get("/", response_model=ReceiptList)
def list_receipts(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    party_id: Optional[UUID] = Query(None, description="Filtrar por dealer o cliente"),
    payment_mode: Optional[PaymentMode] = Query(None),
    receipt_status: Optional[ReceiptStatus] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None, description="Fecha inicial (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Fecha final (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    try:
        filters = ReceiptFilters(
            party_id=party_id,
            payment_mode=payment_mode,
            status=receipt_status,
            start_date=start_date,
            end_date=end_date
        )
    except ValueError as e:
        raise ValidationError(str(e))
    return ReceiptService(db).get_receipts(tenant_id, filters, limit, offset)


@router.get("/{receipt_id}", response_model=ReceiptOut)
def get_receipt(
    receipt_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    return ReceiptService(db).get_receipt(receipt_id, tenant_id)


@router.put("/{receipt_id}", response_model=ReceiptOut)
def update_receipt(
    receipt_id: UUID,
    receipt_data: ReceiptUpdate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Editar un recibo activo; la diferencia de monto se aplica al documento y al saldo"""
    return ReceiptService(db).update_receipt(receipt_id, receipt_data, tenant_id)


@router.post("/{receipt_id}/undo", response_model=ReceiptOut)
def undo_receipt(
    receipt_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Deshacer un recibo activo (una sola vez); restaura pagado y saldo exactos"""
    return ReceiptService(db).undo_receipt(receipt_id, tenant_id)


@router.post("/{receipt_id}/invoice", response_model=ReceiptInvoiceResult, status_code=status.HTTP_201_CREATED)
def convert_receipt_to_invoice(
    receipt_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Generar la factura del pedido asociado al recibo"""
    return ReceiptService(db).convert_receipt_to_invoice(receipt_id, tenant_id)
