"""
Tests para el módulo de Partes (Dealers, Clientes y Grupos)

Cubren:
- Creación con saldo de apertura e historial inicial
- Herencia del límite de crédito del grupo
- Validaciones (código duplicado, grupo solo para dealers)
- Ajustes manuales de saldo (crédito / débito)
- Aislamiento por tenant
"""

import pytest
from decimal import Decimal
from uuid import uuid4
from fastapi import HTTPException
from pydantic import ValidationError as PydanticValidationError

from dairydesk.modules.parties.models import Party, PartyType, TransactionKind
from dairydesk.modules.parties.schemas import PartyCreate, DealerGroupCreate, BalanceAdjustment
from dairydesk.modules.parties.service import PartyService
from dairydesk.modules.receipts.ledger import LedgerService


# ===== FIXTURES =====

@pytest.fixture
def service(db_session):
    return PartyService(db_session)


@pytest.fixture
def sample_dealer_data(dealer_group):
    """Datos de ejemplo para un dealer del grupo North"""
    return PartyCreate(
        party_type="dealer",
        code="DLR-100",
        name="Ganesh Milk Point",
        dealer_group_id=dealer_group.id,
        opening_balance=Decimal("1500.00"),
    )


# ===== TESTS DE SERVICIO =====

class TestPartyService:
    """Tests para PartyService"""

    def test_create_dealer_inherits_group_limit(self, service, tenant_id, sample_dealer_data, dealer_group):
        party = service.create_party(sample_dealer_data, tenant_id)

        assert party.party_type == PartyType.DEALER
        assert party.is_dealer
        assert party.credit_limit == dealer_group.credit_limit
        assert party.current_balance == Decimal("1500.00")

    def test_opening_balance_writes_first_transaction(self, service, tenant_id, sample_dealer_data):
        party = service.create_party(sample_dealer_data, tenant_id)
        transactions = service.get_transactions(party.id, tenant_id)

        assert len(transactions) == 1
        assert transactions[0].entry_number == 1
        assert transactions[0].kind == TransactionKind.DEBIT
        assert transactions[0].balance_after == Decimal("1500.00")

    def test_opening_balance_matches_ledger_audit(self, db_session, service, tenant_id, sample_dealer_data):
        party = service.create_party(sample_dealer_data, tenant_id)
        transactions = service.get_transactions(party.id, tenant_id)

        assert transactions[0].reference_type == "opening"
        assert LedgerService(db_session).audit(tenant_id).is_consistent

    def test_advance_opening_balance_is_credit(self, service, tenant_id):
        party = service.create_party(PartyCreate(
            party_type="customer",
            code="CUS-ADV",
            name="Cliente con anticipo",
            opening_balance=Decimal("-200.00"),
        ), tenant_id)

        transactions = service.get_transactions(party.id, tenant_id)
        assert transactions[0].kind == TransactionKind.CREDIT
        assert transactions[0].amount == Decimal("200.00")

    def test_zero_opening_balance_has_no_history(self, service, tenant_id):
        party = service.create_party(PartyCreate(
            party_type="customer", code="CUS-0", name="Cliente nuevo"
        ), tenant_id)
        assert service.get_transactions(party.id, tenant_id) == []

    def test_customer_cannot_join_group(self, service, tenant_id, dealer_group):
        with pytest.raises(HTTPException) as exc_info:
            service.create_party(PartyCreate(
                party_type="customer",
                code="CUS-G",
                name="Cliente en grupo",
                dealer_group_id=dealer_group.id,
            ), tenant_id)
        assert exc_info.value.status_code == 422

    def test_duplicate_code_conflicts(self, service, tenant_id, sample_dealer_data):
        service.create_party(sample_dealer_data, tenant_id)
        with pytest.raises(HTTPException) as exc_info:
            service.create_party(sample_dealer_data, tenant_id)
        assert exc_info.value.status_code == 409

    def test_duplicate_group_code_conflicts(self, service, tenant_id, dealer_group):
        with pytest.raises(HTTPException) as exc_info:
            service.create_dealer_group(DealerGroupCreate(code="NORTH", name="Otro"), tenant_id)
        assert exc_info.value.status_code == 409

    def test_party_scoped_by_tenant(self, service, dealer):
        with pytest.raises(HTTPException) as exc_info:
            service.get_party(dealer.id, uuid4())
        assert exc_info.value.status_code == 404

    def test_filter_by_type(self, service, tenant_id, dealer, customer):
        result = service.get_parties(tenant_id, PartyType.CUSTOMER)
        assert result.total == 1
        assert result.items[0].id == customer.id


class TestBalanceAdjustment:
    """Créditos y débitos manuales al saldo"""

    def test_credit_lowers_balance(self, service, tenant_id, sample_dealer_data):
        party = service.create_party(sample_dealer_data, tenant_id)

        adjusted = service.adjust_balance(party.id, BalanceAdjustment(
            kind="credit", amount=Decimal("500"), description="Nota de crédito por leche devuelta"
        ), tenant_id)

        assert adjusted.current_balance == Decimal("1000.00")
        last = service.get_transactions(party.id, tenant_id)[-1]
        assert last.entry_number == 2
        assert last.kind == TransactionKind.CREDIT
        assert last.reference_type == "adjustment"
        assert last.balance_after == Decimal("1000.00")

    def test_debit_raises_balance(self, db_session, service, tenant_id, dealer):
        adjusted = service.adjust_balance(dealer.id, BalanceAdjustment(
            kind="debit", amount=Decimal("75.50"), description="Cargo por crates no devueltos"
        ), tenant_id)

        assert adjusted.current_balance == Decimal("75.50")
        assert LedgerService(db_session).audit(tenant_id).is_consistent

    @pytest.mark.parametrize("amount", ["0", "-10"])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(PydanticValidationError):
            BalanceAdjustment(kind="debit", amount=Decimal(amount), description="x")

    def test_sub_cent_amount_rejected(self, service, tenant_id, dealer):
        with pytest.raises(HTTPException) as exc_info:
            service.adjust_balance(dealer.id, BalanceAdjustment(
                kind="debit", amount=Decimal("0.001"), description="Redondeo"
            ), tenant_id)
        assert exc_info.value.status_code == 422
        assert service.get_transactions(dealer.id, tenant_id) == []

    def test_unknown_party(self, service, tenant_id):
        with pytest.raises(HTTPException) as exc_info:
            service.adjust_balance(uuid4(), BalanceAdjustment(
                kind="debit", amount=Decimal("10"), description="x"
            ), tenant_id)
        assert exc_info.value.status_code == 404


class TestCreditUtilization:

    def test_utilization_percentage(self):
        party = Party(credit_limit=Decimal("1000"), current_balance=Decimal("250"))
        assert party.credit_utilization == Decimal("25.00")

    def test_advance_balance_has_no_utilization(self):
        party = Party(credit_limit=Decimal("1000"), current_balance=Decimal("-50"))
        assert party.credit_utilization == Decimal("0.00")


# ===== TESTS DE API =====

class TestPartyApi:

    def test_create_and_get(self, client):
        response = client.post("/parties/", json={
            "party_type": "customer",
            "code": "CUS-API",
            "name": "Cafe Madras",
            "opening_balance": "300.00",
        })
        assert response.status_code == 201
        party_id = response.json()["id"]

        response = client.get(f"/parties/{party_id}")
        assert response.status_code == 200
        assert Decimal(response.json()["current_balance"]) == Decimal("300.00")

        response = client.get(f"/parties/{party_id}/transactions")
        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_adjust_balance(self, client, dealer):
        response = client.put(f"/parties/{dealer.id}/balance", json={
            "kind": "debit", "amount": "250", "description": "Saldo migrado"
        })
        assert response.status_code == 200
        assert Decimal(response.json()["current_balance"]) == Decimal("250.00")

        response = client.put(f"/parties/{dealer.id}/balance", json={
            "kind": "credit", "amount": "0", "description": "Vacío"
        })
        assert response.status_code == 422

    def test_missing_tenant_header(self, client):
        response = client.get("/parties/", headers={"X-Company-ID": ""})
        assert response.status_code == 400

    def test_unknown_party(self, client):
        response = client.get(f"/parties/{uuid4()}")
        assert response.status_code == 404
