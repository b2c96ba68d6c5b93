from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from dairydesk.database.database import get_db
from dairydesk.common.middleware import get_tenant_id
from dairydesk.modules.parties.models import PartyType as ModelPartyType
from dairydesk.modules.parties.service import PartyService
from dairydesk.modules.parties.schemas import (
    DealerGroupCreate, DealerGroupOut, PartyCreate, PartyOut, PartyList,
    PartyTransactionOut, PartyType, BalanceAdjustment
)

router = APIRouter(prefix="/parties", tags=["Parties"])


@router.post("/groups", response_model=DealerGroupOut, status_code=status.HTTP_201_CREATED)
def create_dealer_group(
    group_data: DealerGroupCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    return PartyService(db).create_dealer_group(group_data, tenant_id)


@router.post("/", response_model=PartyOut, status_code=status.HTTP_201_CREATED)
def create_party(
    party_data: PartyCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Crear dealer o cliente con saldo de apertura"""
    return PartyService(db).create_party(party_data, tenant_id)


@router.get("/", response_model=PartyList)
def list_parties(
    party_type: Optional[PartyType] = Query(None, description="dealer o customer"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    model_type = ModelPartyType(party_type.value) if party_type else None
    return PartyService(db).get_parties(tenant_id, model_type, limit, offset)


@router.get("/{party_id}", response_model=PartyOut)
def get_party(
    party_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    return PartyService(db).get_party(party_id, tenant_id)


@router.get("/{party_id}/transactions", response_model=List[PartyTransactionOut])
def get_party_transactions(
    party_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Historial de movimientos de saldo con saldo resultante"""
    return PartyService(db).get_transactions(party_id, tenant_id)


@router.put("/{party_id}/balance", response_model=PartyOut)
def adjust_party_balance(
    party_id: UUID,
    adjustment: BalanceAdjustment,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Crédito o débito manual al saldo (queda registrado en el historial)"""
    return PartyService(db).adjust_balance(party_id, adjustment, tenant_id)
