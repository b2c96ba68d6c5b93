from pydantic import BaseModel, Field, ConfigDict
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from enum import Enum


class PartyType(str, Enum):
    DEALER = "dealer"
    CUSTOMER = "customer"


class TransactionKind(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


# ===== DEALER GROUPS =====

class DealerGroupCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    discount_percentage: Decimal = Field(Decimal('0'), ge=0, le=100)
    credit_limit: Decimal = Field(Decimal('0'), ge=0)


class DealerGroupOut(DealerGroupCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    is_active: bool


# ===== PARTIES =====

class PartyCreate(BaseModel):
    party_type: PartyType
    code: str = Field(..., min_length=1, max_length=30)
    name: str = Field(..., min_length=1, max_length=200)
    dealer_group_id: Optional[UUID] = None
    opening_balance: Decimal = Field(Decimal('0'), description="Positivo = debe, negativo = crédito a favor")
    credit_limit: Optional[Decimal] = Field(None, ge=0, description="Por defecto el límite del grupo")
    discount_percentage: Decimal = Field(Decimal('0'), ge=0, le=100)
    notes: Optional[str] = None


class PartyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    party_type: PartyType
    code: str
    name: str
    dealer_group_id: Optional[UUID] = None
    opening_balance: Decimal
    current_balance: Decimal
    credit_limit: Decimal
    discount_percentage: Decimal
    credit_utilization: Decimal
    is_active: bool


class PartyList(BaseModel):
    items: List[PartyOut]
    total: int


class PartyTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: TransactionKind
    amount: Decimal
    description: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[UUID] = None
    balance_after: Decimal
    created_at: datetime


class BalanceAdjustment(BaseModel):
    """Ajuste manual del saldo: debit suma (la parte debe más), credit resta"""
    kind: TransactionKind
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=255)
