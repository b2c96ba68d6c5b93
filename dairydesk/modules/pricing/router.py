from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
from datetime import date

from dairydesk.database.database import get_db
from dairydesk.common.middleware import get_tenant_id
from dairydesk.modules.pricing.resolver import PricingResolver
from dairydesk.modules.pricing.service import PricingService
from dairydesk.modules.pricing.schemas import (
    PricingOverrideUpsert, PricingOverrideOut, PricingOverrideList, ResolvedPrice
)

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.put("/overrides", response_model=PricingOverrideOut)
def upsert_pricing_override(
    data: PricingOverrideUpsert,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Crear o actualizar el precio de un dealer o de un grupo de dealers"""
    return PricingService(db).upsert_override(data, tenant_id)


@router.get("/overrides", response_model=PricingOverrideList)
def list_pricing_overrides(
    party_id: Optional[UUID] = Query(None),
    dealer_group_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    return PricingService(db).get_overrides(tenant_id, party_id, dealer_group_id)


@router.get("/resolve", response_model=ResolvedPrice)
def resolve_price(
    party_id: UUID = Query(..., description="Dealer o cliente comprador"),
    product_id: UUID = Query(...),
    on_date: Optional[date] = Query(None, description="Fecha de vigencia (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Precio efectivo: individual > grupo > producto"""
    return PricingResolver(db).resolve_for_party(tenant_id, party_id, product_id, on_date)
