from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
import logging

from dairydesk.common.exceptions import ValidationError
from dairydesk.modules.pricing.models import PricingOverride, PricingScope, DiscountType
from dairydesk.modules.pricing.schemas import PricingOverrideUpsert, PricingOverrideList
from dairydesk.modules.parties.service import PartyService
from dairydesk.modules.products.service import ProductService

logger = logging.getLogger(__name__)


class PricingService:
    def __init__(self, db: Session):
        self.db = db

    def get_individual_pricing(self, party_id: UUID, product_id: UUID, tenant_id: UUID) -> Optional[PricingOverride]:
        return self.db.query(PricingOverride).filter(
            PricingOverride.tenant_id == tenant_id,
            PricingOverride.scope == PricingScope.INDIVIDUAL,
            PricingOverride.party_id == party_id,
            PricingOverride.product_id == product_id
        ).first()

    def get_group_pricing(self, group_id: UUID, product_id: UUID, tenant_id: UUID) -> Optional[PricingOverride]:
        return self.db.query(PricingOverride).filter(
            PricingOverride.tenant_id == tenant_id,
            PricingOverride.scope == PricingScope.GROUP,
            PricingOverride.dealer_group_id == group_id,
            PricingOverride.product_id == product_id
        ).first()

    def upsert_override(self, data: PricingOverrideUpsert, tenant_id: UUID) -> PricingOverride:
        """Crear o reemplazar el precio de un dealer o grupo para un producto"""
        try:
            ProductService(self.db).get_product(data.product_id, tenant_id)
            scope = PricingScope(data.scope.value)

            if scope == PricingScope.INDIVIDUAL:
                party = PartyService(self.db).get_party(data.party_id, tenant_id)
                if not party.is_dealer:
                    raise ValidationError("Los precios individuales solo aplican a dealers")
                override = self.get_individual_pricing(data.party_id, data.product_id, tenant_id)
            else:
                PartyService(self.db).get_dealer_group(data.dealer_group_id, tenant_id)
                override = self.get_group_pricing(data.dealer_group_id, data.product_id, tenant_id)

            if override is None:
                override = PricingOverride(tenant_id=tenant_id, scope=scope)
                self.db.add(override)

            values = data.model_dump(exclude={"scope", "discount_type"})
            for field, value in values.items():
                setattr(override, field, value)
            override.discount_type = DiscountType(data.discount_type.value)

            self.db.commit()
            self.db.refresh(override)
            logger.info(
                f"Upserted {scope.value} pricing for product {data.product_id}: "
                f"selling={override.selling_price} final={override.final_price}"
            )
            return override

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error upserting pricing override: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error guardando precio: {str(e)}"
            )

    def get_overrides(
        self,
        tenant_id: UUID,
        party_id: Optional[UUID] = None,
        dealer_group_id: Optional[UUID] = None
    ) -> PricingOverrideList:
        query = self.db.query(PricingOverride).filter(PricingOverride.tenant_id == tenant_id)
        if party_id:
            query = query.filter(PricingOverride.party_id == party_id)
        if dealer_group_id:
            query = query.filter(PricingOverride.dealer_group_id == dealer_group_id)
        items = query.all()
        return PricingOverrideList(items=items, total=len(items))
