from pydantic import BaseModel, Field, ConfigDict, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date
from enum import Enum

from dairydesk.modules.taxes.schemas import TaxRates, TaxMethod


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PricingScope(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"


class PriceSource(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"
    PRODUCT = "product"


class PricingOverrideUpsert(BaseModel):
    scope: PricingScope
    party_id: Optional[UUID] = None
    dealer_group_id: Optional[UUID] = None
    product_id: UUID
    base_price: Decimal = Field(Decimal('0'), ge=0)
    selling_price: Decimal = Field(..., ge=0)
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(Decimal('0'), ge=0)
    igst: Optional[Decimal] = Field(None, ge=0, le=100)
    cgst: Optional[Decimal] = Field(None, ge=0, le=100)
    sgst: Optional[Decimal] = Field(None, ge=0, le=100)
    is_active: bool = True
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def validate_owner(self):
        if self.scope == PricingScope.INDIVIDUAL and (not self.party_id or self.dealer_group_id):
            raise ValueError("Un precio individual requiere party_id y no dealer_group_id")
        if self.scope == PricingScope.GROUP and (not self.dealer_group_id or self.party_id):
            raise ValueError("Un precio de grupo requiere dealer_group_id y no party_id")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("El descuento porcentual no puede superar 100")
        if (self.igst or 0) > 0 and ((self.cgst or 0) > 0 or (self.sgst or 0) > 0):
            raise ValueError("IGST y CGST/SGST son excluyentes")
        if self.effective_from and self.effective_to and self.effective_to < self.effective_from:
            raise ValueError("effective_to no puede ser anterior a effective_from")
        return self


class PricingOverrideOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scope: PricingScope
    party_id: Optional[UUID] = None
    dealer_group_id: Optional[UUID] = None
    product_id: UUID
    base_price: Decimal
    selling_price: Decimal
    discount_type: DiscountType
    discount_value: Decimal
    final_price: Decimal
    margin: Decimal
    igst: Optional[Decimal] = None
    cgst: Optional[Decimal] = None
    sgst: Optional[Decimal] = None
    is_active: bool
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None


class PricingOverrideList(BaseModel):
    items: List[PricingOverrideOut]
    total: int


class ResolvedPrice(BaseModel):
    """Precio efectivo de un producto para un comprador"""
    product_id: UUID
    unit_price: Decimal
    tax_rate: Decimal
    breakdown: TaxRates
    tax_method: TaxMethod
    source_priority: PriceSource
