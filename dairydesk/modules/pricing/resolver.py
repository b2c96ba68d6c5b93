"""
Resolución del precio efectivo de un producto para un comprador

Jerarquía para dealers:
1. Precio individual del dealer
2. Precio del grupo del dealer
3. Precio y GST por defecto del producto

Los clientes siempre usan el precio del producto; su descuento estándar se
aplica después como descuento global del documento, no por línea.
"""

from sqlalchemy.orm import Session
from datetime import date
from typing import Optional, Tuple
from uuid import UUID
import logging

from dairydesk.common.money import to_decimal, quantize_money
from dairydesk.modules.parties.models import Party
from dairydesk.modules.parties.service import PartyService
from dairydesk.modules.pricing.models import PricingOverride
from dairydesk.modules.pricing.schemas import ResolvedPrice, PriceSource
from dairydesk.modules.pricing.service import PricingService
from dairydesk.modules.products.models import Product
from dairydesk.modules.products.service import ProductService
from dairydesk.modules.taxes.schemas import TaxRates, TaxMethod

logger = logging.getLogger(__name__)


class PricingResolver:
    def __init__(self, db: Session):
        self.db = db
        self.pricing_service = PricingService(db)
        self.product_service = ProductService(db)

    def resolve(
        self,
        tenant_id: UUID,
        buyer: Party,
        product_id: UUID,
        on_date: Optional[date] = None
    ) -> ResolvedPrice:
        """
        Resolver precio unitario y tasas GST

        Args:
            tenant_id: ID de la empresa (tenant)
            buyer: Dealer o cliente que compra
            product_id: Producto a cotizar
            on_date: Fecha de vigencia de las listas de precios (hoy por defecto)

        Returns:
            ResolvedPrice con la fuente que ganó (individual, group o product)

        Raises:
            NotFoundError: si el producto no existe en el tenant
        """
        product = self.product_service.get_product(product_id, tenant_id)
        override, source = self._find_override(tenant_id, buyer, product_id, on_date)

        if override is not None:
            unit_price = override.final_price
            rates = self._override_rates(override, product)
        else:
            unit_price = self._product_price(product)
            rates = self._product_rates(product)

        return ResolvedPrice(
            product_id=product.id,
            unit_price=unit_price,
            tax_rate=rates.total_rate,
            breakdown=rates,
            tax_method=TaxMethod(product.tax_method.value if product.tax_method else TaxMethod.EXCLUSIVE),
            source_priority=source
        )

    def resolve_for_party(self, tenant_id: UUID, party_id: UUID, product_id: UUID,
                          on_date: Optional[date] = None) -> ResolvedPrice:
        buyer = PartyService(self.db).get_party(party_id, tenant_id)
        return self.resolve(tenant_id, buyer, product_id, on_date)

    def _find_override(
        self, tenant_id: UUID, buyer: Party, product_id: UUID, on_date: Optional[date]
    ) -> Tuple[Optional[PricingOverride], PriceSource]:
        if not buyer.is_dealer:
            return None, PriceSource.PRODUCT

        individual = self.pricing_service.get_individual_pricing(buyer.id, product_id, tenant_id)
        if individual is not None and individual.is_effective(on_date):
            return individual, PriceSource.INDIVIDUAL

        if buyer.dealer_group_id:
            group = self.pricing_service.get_group_pricing(buyer.dealer_group_id, product_id, tenant_id)
            if group is not None and group.is_effective(on_date):
                return group, PriceSource.GROUP

        return None, PriceSource.PRODUCT

    def _product_price(self, product: Product):
        if product.selling_price is None:
            logger.warning(f"Product {product.sku} has no selling price, defaulting to 0")
        return quantize_money(product.selling_price)

    def _product_rates(self, product: Product) -> TaxRates:
        return TaxRates(
            igst=to_decimal(product.igst),
            cgst=to_decimal(product.cgst),
            sgst=to_decimal(product.sgst),
        ).normalized()

    def _override_rates(self, override: PricingOverride, product: Product) -> TaxRates:
        if not override.has_tax_override:
            return self._product_rates(product)
        return TaxRates(
            igst=to_decimal(override.igst),
            cgst=to_decimal(override.cgst),
            sgst=to_decimal(override.sgst),
        ).normalized()
