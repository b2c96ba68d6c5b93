from pydantic import BaseModel, Field
from decimal import Decimal
from enum import Enum


class TaxMethod(str, Enum):
    INCLUSIVE = "inclusive"
    EXCLUSIVE = "exclusive"


class TaxRates(BaseModel):
    """Tasas GST en porcentaje (ej. 18 para 18%)"""
    igst: Decimal = Field(Decimal('0'), ge=0, le=100)
    cgst: Decimal = Field(Decimal('0'), ge=0, le=100)
    sgst: Decimal = Field(Decimal('0'), ge=0, le=100)

    @property
    def total_rate(self) -> Decimal:
        return self.igst if self.igst > 0 else self.cgst + self.sgst

    def normalized(self) -> "TaxRates":
        """IGST excluye CGST/SGST: si hay IGST los otros componentes quedan en cero"""
        if self.igst > 0:
            return TaxRates(igst=self.igst)
        return TaxRates(cgst=self.cgst, sgst=self.sgst)


class TaxSplit(BaseModel):
    """Resultado de separar un monto en base gravable + impuesto (sin redondear)"""
    amount: Decimal
    taxable_value: Decimal
    tax_amount: Decimal
    total_rate: Decimal
    method: TaxMethod


class TaxComponents(BaseModel):
    """Impuesto desglosado por componente GST"""
    igst: Decimal = Decimal('0.00')
    cgst: Decimal = Decimal('0.00')
    sgst: Decimal = Decimal('0.00')

    @property
    def total(self) -> Decimal:
        return self.igst + self.cgst + self.sgst
