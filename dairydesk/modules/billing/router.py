from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
from datetime import date

from dairydesk.database.database import get_db
from dairydesk.common.middleware import get_tenant_id
from dairydesk.common.exceptions import ValidationError
from dairydesk.modules.billing.service import BillingService
from dairydesk.modules.billing.schemas import (
    OrderCreate, OrderOut, OrderCancelRequest, InvoiceCreate, InvoiceFromOrder,
    InvoiceOut, InvoiceVoidRequest, DocumentTotals, OrderList, InvoiceList,
    OrderFilters, InvoiceFilters, OrderStatus, InvoiceStatus, PaymentStatus
)

orders_router = APIRouter(prefix="/orders", tags=["Orders"])
invoices_router = APIRouter(prefix="/invoices", tags=["Invoices"])


@orders_router.post("/", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(
    order_data: OrderCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """
    Registrar un pedido

    Resuelve el precio de cada línea (individual > grupo > producto), calcula
    totales y carga el total al saldo de la parte.
    """
    return BillingService(db).create_order(order_data, tenant_id)


@orders_router.get("/", response_model=OrderList)
def list_orders(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    party_id: Optional[UUID] = Query(None, description="Filtrar por dealer o cliente"),
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    start_date: Optional[date] = Query(None, description="Fecha inicial (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Fecha final (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    try:
        filters = OrderFilters(
            party_id=party_id,
            status=order_status,
            payment_status=payment_status,
            start_date=start_date,
            end_date=end_date
        )
    except ValueError as e:
        raise ValidationError(str(e))
    return BillingService(db).get_orders(tenant_id, filters, limit, offset)


@orders_router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    return BillingService(db).get_order(order_id, tenant_id)


@orders_router.get("/{order_id}/totals", response_model=DocumentTotals)
def get_order_totals(
    order_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Totales, desglose de impuestos y resumen físico (litros, kg, empaques)"""
    return BillingService(db).get_order_totals(order_id, tenant_id)


@orders_router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: UUID,
    cancel_data: OrderCancelRequest,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Anular un pedido sin recibos activos; reversa el cargo al saldo"""
    return BillingService(db).cancel_order(order_id, tenant_id, cancel_data.reason)


@invoices_router.post("/", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Factura directa (venta sin pedido previo)"""
    return BillingService(db).create_invoice(invoice_data, tenant_id)


@invoices_router.post("/from-order", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice_from_order(
    data: InvoiceFromOrder,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Congelar los totales de un pedido en una factura, sin volver a resolver precios"""
    return BillingService(db).create_invoice_from_order(data, tenant_id)


@invoices_router.get("/", response_model=InvoiceList)
def list_invoices(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    party_id: Optional[UUID] = Query(None, description="Filtrar por dealer o cliente"),
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    start_date: Optional[date] = Query(None, description="Fecha inicial (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Fecha final (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    try:
        filters = InvoiceFilters(
            party_id=party_id,
            status=invoice_status,
            payment_status=payment_status,
            start_date=start_date,
            end_date=end_date
        )
    except ValueError as e:
        raise ValidationError(str(e))
    return BillingService(db).get_invoices(tenant_id, filters, limit, offset)


@invoices_router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    return BillingService(db).get_invoice(invoice_id, tenant_id)


@invoices_router.get("/{invoice_id}/totals", response_model=DocumentTotals)
def get_invoice_totals(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    return BillingService(db).get_invoice_totals(invoice_id, tenant_id)


@invoices_router.post("/{invoice_id}/void", response_model=InvoiceOut)
def void_invoice(
    invoice_id: UUID,
    void_data: InvoiceVoidRequest,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """
    Anular una factura

    Una factura directa reversa su cargo al saldo; una factura desde pedido
    reabre el pedido con sus recibos.
    """
    return BillingService(db).void_invoice(invoice_id, tenant_id, void_data.reason)
