from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from decimal import Decimal
from typing import Optional, List, Dict
from uuid import UUID
from datetime import date, datetime
from enum import Enum

from dairydesk.modules.taxes.schemas import TaxMethod
from dairydesk.modules.pricing.schemas import PriceSource


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class AdjustmentOperation(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"


class OrderStatus(str, Enum):
    PLACED = "placed"
    INVOICED = "invoiced"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    OPEN = "open"
    VOID = "void"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


# ===== Resultados de cálculo (sin persistencia) =====

class LineAmounts(BaseModel):
    """Montos calculados de una línea, redondeados a 2 decimales"""
    line_subtotal: Decimal
    discount_amount: Decimal
    taxable_value: Decimal
    tax_amount: Decimal
    igst_amount: Decimal = Decimal('0.00')
    cgst_amount: Decimal = Decimal('0.00')
    sgst_amount: Decimal = Decimal('0.00')
    line_total: Decimal


class PhysicalQuantity(BaseModel):
    liters: Decimal = Decimal('0')
    kg: Decimal = Decimal('0')
    units: Decimal = Decimal('0')
    packages: Decimal = Decimal('0')
    package_type: Optional[str] = None


class PhysicalSummary(BaseModel):
    total_liters: Decimal = Decimal('0')
    total_kg: Decimal = Decimal('0')
    total_packages: Decimal = Decimal('0')
    total_units: Decimal = Decimal('0')
    package_breakdown: Dict[str, Decimal] = Field(default_factory=dict)


class TaxBreakdown(BaseModel):
    igst: Decimal = Decimal('0.00')
    cgst: Decimal = Decimal('0.00')
    sgst: Decimal = Decimal('0.00')
    total: Decimal = Decimal('0.00')


# ===== Descuento global y ajuste personalizado =====

class GlobalDiscount(BaseModel):
    type: DiscountType = DiscountType.PERCENTAGE
    value: Decimal = Field(Decimal('0'), ge=0)
    amount: Decimal = Decimal('0.00')

    @model_validator(mode='after')
    def validate_percentage(self):
        if self.type == DiscountType.PERCENTAGE and self.value > 100:
            raise ValueError('El descuento porcentual debe estar entre 0 y 100')
        return self


class CustomAdjustment(BaseModel):
    """Ajuste con nombre (ej. flete) aplicado después de descuentos e impuestos"""
    text: Optional[str] = Field(None, max_length=200)
    amount: Decimal = Field(Decimal('0'), ge=0)
    type: DiscountType = DiscountType.FIXED
    operation: AdjustmentOperation = AdjustmentOperation.SUBTRACT
    applied_amount: Decimal = Decimal('0.00')

    @model_validator(mode='after')
    def validate_percentage(self):
        if self.type == DiscountType.PERCENTAGE and self.amount > 100:
            raise ValueError('El ajuste porcentual debe estar entre 0 y 100')
        return self

    @property
    def is_applicable(self) -> bool:
        return bool(self.text and self.text.strip()) and self.amount != 0


class DocumentTotals(BaseModel):
    """Totales de un pedido o factura, consumidos por los renderizadores"""
    subtotal: Decimal
    item_discount: Decimal
    tax_breakdown: TaxBreakdown
    grand_total: Decimal
    global_discount: GlobalDiscount
    custom_adjustment: CustomAdjustment
    total: Decimal
    paid_amount: Decimal = Decimal('0.00')
    due_amount: Decimal = Decimal('0.00')
    payment_status: PaymentStatus = PaymentStatus.PENDING
    physical: Optional[PhysicalSummary] = None


# ===== Requests =====

class LineItemCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(..., gt=0, description="Cantidad debe ser mayor a 0")
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(Decimal('0'), ge=0)

    @model_validator(mode='after')
    def validate_discount(self):
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError('El descuento porcentual debe estar entre 0 y 100')
        return self


class DocumentCreate(BaseModel):
    party_id: UUID
    items: List[LineItemCreate] = Field(..., min_length=1, description="Debe incluir al menos un item")
    global_discount: Optional[GlobalDiscount] = None
    custom_adjustment: Optional[CustomAdjustment] = None
    notes: Optional[str] = None

    @field_validator('items')
    @classmethod
    def validate_items(cls, v):
        if not v:
            raise ValueError('Debe incluir al menos un item')
        return v


class OrderCreate(DocumentCreate):
    order_date: date = Field(default_factory=date.today)
    delivery_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_delivery_date(self):
        if self.delivery_date and self.delivery_date < self.order_date:
            raise ValueError('La fecha de entrega no puede ser anterior a la fecha del pedido')
        return self


class InvoiceCreate(DocumentCreate):
    issue_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_due_date(self):
        if self.due_date and self.due_date < self.issue_date:
            raise ValueError('La fecha de vencimiento no puede ser anterior a la fecha de emisión')
        return self


class OrderCancelRequest(BaseModel):
    reason: str = Field("", max_length=500)


class InvoiceVoidRequest(BaseModel):
    reason: str = Field("", max_length=500)


class InvoiceFromOrder(BaseModel):
    order_id: UUID
    issue_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None


class DocumentFilters(BaseModel):
    """Filtros para listar pedidos o facturas (fechas sobre order_date / issue_date)"""
    party_id: Optional[UUID] = None
    payment_status: Optional[PaymentStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError('end_date no puede ser anterior a start_date')
        return self


class OrderFilters(DocumentFilters):
    status: Optional[OrderStatus] = None


class InvoiceFilters(DocumentFilters):
    status: Optional[InvoiceStatus] = None


# ===== Responses =====

class LineItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    position: int
    product_id: UUID
    name: str
    sku: str
    packaging_type: Optional[str] = None
    packaging_size_value: Optional[Decimal] = None
    packaging_size_unit: Optional[str] = None
    units_per_package: Optional[Decimal] = None
    tax_method: TaxMethod
    quantity: Decimal
    unit_price: Decimal
    discount_type: DiscountType
    discount_value: Decimal
    igst_rate: Decimal
    cgst_rate: Decimal
    sgst_rate: Decimal
    line_subtotal: Decimal
    discount_amount: Decimal
    taxable_value: Decimal
    tax_amount: Decimal
    line_total: Decimal
    price_source: PriceSource


class DocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    number: str
    party_id: UUID
    subtotal: Decimal
    item_discount: Decimal
    tax_total: Decimal
    igst_total: Decimal
    cgst_total: Decimal
    sgst_total: Decimal
    grand_total: Decimal
    global_discount_type: Optional[DiscountType] = None
    global_discount_value: Decimal
    global_discount_amount: Decimal
    adjustment_text: Optional[str] = None
    adjustment_amount: Decimal
    adjustment_type: DiscountType
    adjustment_operation: AdjustmentOperation
    adjustment_applied: Decimal
    total: Decimal
    payment_status: PaymentStatus
    paid_amount: Decimal
    due_amount: Decimal
    notes: Optional[str] = None
    line_items: List[LineItemOut] = []
    created_at: datetime


class OrderOut(DocumentOut):
    status: OrderStatus
    order_date: date
    delivery_date: Optional[date] = None
    invoice_id: Optional[UUID] = None


class InvoiceOut(DocumentOut):
    status: InvoiceStatus
    issue_date: date
    due_date: Optional[date] = None
    order_id: Optional[UUID] = None


class OrderList(BaseModel):
    items: List[OrderOut]
    total: int
    limit: int
    offset: int


class InvoiceList(BaseModel):
    items: List[InvoiceOut]
    total: int
    limit: int
    offset: int
