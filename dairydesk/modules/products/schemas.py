from pydantic import BaseModel, Field, ConfigDict, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from enum import Enum


class TaxMethod(str, Enum):
    INCLUSIVE = "inclusive"
    EXCLUSIVE = "exclusive"


class PackagingType(str, Enum):
    POUCH = "pouch"
    BOTTLE = "bottle"
    CUP = "cup"
    TETRA_PACK = "tetra-pack"
    CAN = "can"
    JAR = "jar"
    CRATE = "crate"
    CARTON = "carton"
    BAG = "bag"
    BOX = "box"


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    sku: str = Field(..., min_length=1, max_length=50)
    selling_price: Optional[Decimal] = Field(None, ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    igst: Decimal = Field(Decimal('0'), ge=0, le=100)
    cgst: Decimal = Field(Decimal('0'), ge=0, le=100)
    sgst: Decimal = Field(Decimal('0'), ge=0, le=100)
    tax_method: TaxMethod = TaxMethod.EXCLUSIVE
    packaging_type: Optional[PackagingType] = None
    packaging_size_value: Optional[Decimal] = Field(None, gt=0)
    packaging_size_unit: Optional[str] = Field(None, max_length=20)
    units_per_package: Optional[Decimal] = Field(None, gt=0, description="Unidades por crate/carton/bag/box")

    @model_validator(mode="after")
    def validate_gst_components(self):
        if self.igst > 0 and (self.cgst > 0 or self.sgst > 0):
            raise ValueError("IGST y CGST/SGST son excluyentes")
        return self


class ProductCreate(ProductBase):
    pass


class ProductOut(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    igst: Optional[Decimal] = None
    cgst: Optional[Decimal] = None
    sgst: Optional[Decimal] = None
    is_active: bool
    created_at: datetime

    @model_validator(mode="after")
    def validate_gst_components(self):
        # Los productos persistidos ya fueron validados al crearse
        return self


class ProductList(BaseModel):
    items: List[ProductOut]
    total: int
