"""
Servicios de negocio para dealers, clientes y grupos de dealers

El saldo (current_balance) nunca se escribe aquí directamente: el saldo de
apertura y los ajustes manuales pasan por LedgerService.
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional
from uuid import UUID
import logging

from dairydesk.common.exceptions import NotFoundError, ConflictError, ValidationError
from dairydesk.modules.parties.models import Party, PartyType, DealerGroup, PartyTransaction
from dairydesk.modules.parties.schemas import DealerGroupCreate, PartyCreate, PartyList, BalanceAdjustment, TransactionKind
from dairydesk.modules.receipts.ledger import LedgerService

logger = logging.getLogger(__name__)


class PartyService:
    def __init__(self, db: Session):
        self.db = db

    def create_dealer_group(self, group_data: DealerGroupCreate, tenant_id: UUID) -> DealerGroup:
        try:
            group = DealerGroup(tenant_id=tenant_id, **group_data.model_dump())
            self.db.add(group)
            self.db.commit()
            self.db.refresh(group)
            return group
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"Ya existe un grupo con el código {group_data.code}")

    def get_dealer_group(self, group_id: UUID, tenant_id: UUID) -> DealerGroup:
        group = self.db.query(DealerGroup).filter(
            DealerGroup.id == group_id,
            DealerGroup.tenant_id == tenant_id
        ).first()
        if not group:
            raise NotFoundError(f"Grupo de dealers {group_id} no encontrado")
        return group

    def create_party(self, party_data: PartyCreate, tenant_id: UUID) -> Party:
        """Crear dealer o cliente; los dealers heredan el límite de crédito de su grupo"""
        try:
            party_type = PartyType(party_data.party_type.value)
            credit_limit = party_data.credit_limit

            if party_data.dealer_group_id:
                if party_type != PartyType.DEALER:
                    raise ValidationError("Solo los dealers pueden pertenecer a un grupo")
                group = self.get_dealer_group(party_data.dealer_group_id, tenant_id)
                if credit_limit is None:
                    credit_limit = group.credit_limit

            party = Party(
                tenant_id=tenant_id,
                party_type=party_type,
                code=party_data.code,
                name=party_data.name,
                dealer_group_id=party_data.dealer_group_id,
                opening_balance=party_data.opening_balance,
                current_balance=0,
                credit_limit=credit_limit or 0,
                discount_percentage=party_data.discount_percentage,
                notes=party_data.notes,
            )
            self.db.add(party)
            self.db.flush()

            LedgerService(self.db).adjust_balance(party, party_data.opening_balance, "Saldo de apertura", "opening")

            self.db.commit()
            self.db.refresh(party)
            logger.info(f"Created {party_type.value} {party.code} with opening balance {party.opening_balance}")
            return party

        except HTTPException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"Ya existe una parte con el código {party_data.code}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating party: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creando la parte: {str(e)}"
            )

    def get_party(self, party_id: UUID, tenant_id: UUID) -> Party:
        party = self.db.query(Party).filter(
            Party.id == party_id,
            Party.tenant_id == tenant_id
        ).first()
        if not party:
            raise NotFoundError(f"Parte {party_id} no encontrada")
        return party

    def get_parties(
        self,
        tenant_id: UUID,
        party_type: Optional[PartyType] = None,
        limit: int = 100,
        offset: int = 0
    ) -> PartyList:
        query = self.db.query(Party).filter(Party.tenant_id == tenant_id)
        if party_type:
            query = query.filter(Party.party_type == party_type)
        query = query.order_by(Party.name)
        total = query.count()
        return PartyList(items=query.offset(offset).limit(limit).all(), total=total)

    def get_transactions(self, party_id: UUID, tenant_id: UUID) -> List[PartyTransaction]:
        """Historial de saldo de la parte, del más antiguo al más reciente"""
        self.get_party(party_id, tenant_id)
        return self.db.query(PartyTransaction).filter(
            PartyTransaction.party_id == party_id,
            PartyTransaction.tenant_id == tenant_id
        ).order_by(PartyTransaction.entry_number).all()

    def adjust_balance(self, party_id: UUID, adjustment: BalanceAdjustment, tenant_id: UUID) -> Party:
        """Débito (suma) o crédito (resta) manual al saldo, con su movimiento en el historial"""
        delta = adjustment.amount if adjustment.kind == TransactionKind.DEBIT else -adjustment.amount
        party = LedgerService(self.db).post_adjustment(party_id, tenant_id, delta, adjustment.description)
        self.db.refresh(party)
        return party
