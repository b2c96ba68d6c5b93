"""
Listas de precios por dealer (individual) y por grupo de dealers

Una fila por (tenant, dueño del precio, producto). El precio individual
siempre tiene prioridad sobre el del grupo al resolver.
"""

from dairydesk.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey, Numeric, Enum, Date, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from datetime import date
from decimal import Decimal
from typing import Optional
from dairydesk.common.mixins import TenantMixin, TimestampMixin
import enum


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PricingScope(str, enum.Enum):
    INDIVIDUAL = "individual"  # Precio específico de un dealer
    GROUP = "group"            # Precio del grupo de dealers


class PricingOverride(Base, TenantMixin, TimestampMixin):
    __tablename__ = "pricing_overrides"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    scope = Column(Enum(PricingScope), nullable=False)
    party_id = Column(Uuid(as_uuid=True), ForeignKey("parties.id"), nullable=True, index=True)
    dealer_group_id = Column(Uuid(as_uuid=True), ForeignKey("dealer_groups.id"), nullable=True, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False, index=True)

    base_price = Column(Numeric(15, 2), nullable=False, default=0)
    selling_price = Column(Numeric(15, 2), nullable=False)
    discount_type = Column(Enum(DiscountType), nullable=False, default=DiscountType.PERCENTAGE)
    discount_value = Column(Numeric(15, 2), nullable=False, default=0)

    # Si todas son NULL se usan las tasas del producto
    igst = Column(Numeric(5, 2), nullable=True)
    cgst = Column(Numeric(5, 2), nullable=True)
    sgst = Column(Numeric(5, 2), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    effective_from = Column(Date, nullable=True)
    effective_to = Column(Date, nullable=True)
    notes = Column(String(500), nullable=True)

    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("tenant_id", "party_id", "product_id", name="uq_pricing_tenant_party_product"),
        UniqueConstraint("tenant_id", "dealer_group_id", "product_id", name="uq_pricing_tenant_group_product"),
    )

    @property
    def final_price(self) -> Decimal:
        """Precio de venta menos el descuento propio de la lista, nunca negativo"""
        selling = Decimal(self.selling_price or 0)
        value = Decimal(self.discount_value or 0)
        if self.discount_type == DiscountType.PERCENTAGE:
            price = selling - selling * value / 100
        else:
            price = selling - value
        return max(price, Decimal('0')).quantize(Decimal('0.01'))

    @property
    def margin(self) -> Decimal:
        return self.final_price - Decimal(self.base_price or 0)

    @property
    def has_tax_override(self) -> bool:
        return any(rate is not None for rate in (self.igst, self.cgst, self.sgst))

    def is_effective(self, on_date: Optional[date] = None) -> bool:
        on_date = on_date or date.today()
        if not self.is_active:
            return False
        if self.effective_from and on_date < self.effective_from:
            return False
        if self.effective_to and on_date > self.effective_to:
            return False
        return True
