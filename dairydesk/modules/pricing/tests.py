"""
Tests para el módulo de Precios (listas por dealer y por grupo)

Cubren:
- Jerarquía individual > grupo > producto
- Vigencia de las listas (fechas y activo)
- Override de tasas GST por lista
- Upsert idempotente y validaciones del dueño del precio
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4
from fastapi import HTTPException
from pydantic import ValidationError as PydanticValidationError

from dairydesk.modules.pricing.models import PricingOverride, DiscountType
from dairydesk.modules.pricing.resolver import PricingResolver
from dairydesk.modules.pricing.schemas import PricingOverrideUpsert, PriceSource
from dairydesk.modules.pricing.service import PricingService
from dairydesk.modules.taxes.schemas import TaxMethod


# ===== FIXTURES =====

@pytest.fixture
def pricing_service(db_session):
    return PricingService(db_session)


@pytest.fixture
def resolver(db_session):
    return PricingResolver(db_session)


@pytest.fixture
def group_price(pricing_service, tenant_id, dealer_group, milk_pouch):
    """Precio del grupo North: 60"""
    return pricing_service.upsert_override(PricingOverrideUpsert(
        scope="group",
        dealer_group_id=dealer_group.id,
        product_id=milk_pouch.id,
        base_price=Decimal("45"),
        selling_price=Decimal("60"),
    ), tenant_id)


@pytest.fixture
def individual_price(pricing_service, tenant_id, dealer, milk_pouch):
    """Precio individual del dealer: 50"""
    return pricing_service.upsert_override(PricingOverrideUpsert(
        scope="individual",
        party_id=dealer.id,
        product_id=milk_pouch.id,
        base_price=Decimal("45"),
        selling_price=Decimal("50"),
    ), tenant_id)


# ===== TESTS DEL MODELO =====

class TestPricingOverrideModel:

    def test_percentage_discount(self):
        override = PricingOverride(
            selling_price=Decimal("80"), discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("10"), base_price=Decimal("60")
        )
        assert override.final_price == Decimal("72.00")
        assert override.margin == Decimal("12.00")

    def test_fixed_discount_never_negative(self):
        override = PricingOverride(
            selling_price=Decimal("20"), discount_type=DiscountType.FIXED, discount_value=Decimal("25")
        )
        assert override.final_price == Decimal("0.00")

    def test_effective_window(self):
        today = date.today()
        override = PricingOverride(
            is_active=True,
            effective_from=today - timedelta(days=5),
            effective_to=today + timedelta(days=5),
        )
        assert override.is_effective(today)
        assert not override.is_effective(today + timedelta(days=6))
        assert not override.is_effective(today - timedelta(days=6))

    def test_inactive_is_never_effective(self):
        assert not PricingOverride(is_active=False).is_effective()


class TestPricingOverrideValidation:

    def test_individual_requires_party(self, milk_pouch):
        with pytest.raises(PydanticValidationError):
            PricingOverrideUpsert(scope="individual", product_id=milk_pouch.id, selling_price=Decimal("10"))

    def test_percentage_over_100(self, dealer, milk_pouch):
        with pytest.raises(PydanticValidationError):
            PricingOverrideUpsert(
                scope="individual", party_id=dealer.id, product_id=milk_pouch.id,
                selling_price=Decimal("10"), discount_value=Decimal("101")
            )

    def test_igst_with_cgst_rejected(self, dealer, milk_pouch):
        with pytest.raises(PydanticValidationError):
            PricingOverrideUpsert(
                scope="individual", party_id=dealer.id, product_id=milk_pouch.id,
                selling_price=Decimal("10"), igst=Decimal("5"), cgst=Decimal("2.5")
            )


# ===== TESTS DE RESOLUCIÓN =====

class TestPricingResolver:
    """Tests para PricingResolver.resolve"""

    def test_product_default_without_overrides(self, resolver, tenant_id, dealer, milk_pouch):
        resolved = resolver.resolve(tenant_id, dealer, milk_pouch.id)

        assert resolved.unit_price == Decimal("30.00")
        assert resolved.tax_rate == Decimal("5")
        assert resolved.tax_method == TaxMethod.EXCLUSIVE
        assert resolved.source_priority == PriceSource.PRODUCT

    def test_group_price_applies(self, resolver, tenant_id, dealer, milk_pouch, group_price):
        resolved = resolver.resolve(tenant_id, dealer, milk_pouch.id)
        assert resolved.unit_price == Decimal("60.00")
        assert resolved.source_priority == PriceSource.GROUP

    def test_individual_beats_group(self, resolver, tenant_id, dealer, milk_pouch, group_price, individual_price):
        resolved = resolver.resolve(tenant_id, dealer, milk_pouch.id)
        assert resolved.unit_price == Decimal("50.00")
        assert resolved.source_priority == PriceSource.INDIVIDUAL

    def test_expired_individual_falls_back_to_group(
        self, db_session, resolver, tenant_id, dealer, milk_pouch, group_price, individual_price
    ):
        individual_price.effective_to = date.today() - timedelta(days=1)
        db_session.commit()

        resolved = resolver.resolve(tenant_id, dealer, milk_pouch.id)
        assert resolved.source_priority == PriceSource.GROUP

    def test_customer_ignores_dealer_lists(self, resolver, tenant_id, customer, milk_pouch, group_price):
        resolved = resolver.resolve(tenant_id, customer, milk_pouch.id)
        assert resolved.unit_price == Decimal("30.00")
        assert resolved.source_priority == PriceSource.PRODUCT

    def test_override_tax_rates(self, pricing_service, resolver, tenant_id, dealer, milk_pouch):
        pricing_service.upsert_override(PricingOverrideUpsert(
            scope="individual", party_id=dealer.id, product_id=milk_pouch.id,
            selling_price=Decimal("50"), igst=Decimal("12")
        ), tenant_id)

        resolved = resolver.resolve(tenant_id, dealer, milk_pouch.id)
        assert resolved.tax_rate == Decimal("12")
        assert resolved.breakdown.cgst == 0
        assert resolved.breakdown.sgst == 0

    def test_resolution_is_repeatable(self, resolver, tenant_id, dealer, milk_pouch, group_price, individual_price):
        first = resolver.resolve(tenant_id, dealer, milk_pouch.id)
        second = resolver.resolve(tenant_id, dealer, milk_pouch.id)
        assert first == second

    def test_unknown_product(self, resolver, tenant_id, dealer):
        with pytest.raises(HTTPException) as exc_info:
            resolver.resolve(tenant_id, dealer, uuid4())
        assert exc_info.value.status_code == 404


# ===== TESTS DE SERVICIO =====

class TestPricingService:

    def test_upsert_replaces_existing(self, pricing_service, tenant_id, dealer, milk_pouch, individual_price):
        updated = pricing_service.upsert_override(PricingOverrideUpsert(
            scope="individual", party_id=dealer.id, product_id=milk_pouch.id,
            selling_price=Decimal("48"),
        ), tenant_id)

        assert updated.id == individual_price.id
        assert pricing_service.get_overrides(tenant_id, party_id=dealer.id).total == 1

    def test_individual_price_only_for_dealers(self, pricing_service, tenant_id, customer, milk_pouch):
        with pytest.raises(HTTPException) as exc_info:
            pricing_service.upsert_override(PricingOverrideUpsert(
                scope="individual", party_id=customer.id, product_id=milk_pouch.id,
                selling_price=Decimal("25"),
            ), tenant_id)
        assert exc_info.value.status_code == 422


# ===== TESTS DE API =====

class TestPricingApi:

    def test_upsert_and_resolve(self, client, dealer, dealer_group, milk_pouch):
        response = client.put("/pricing/overrides", json={
            "scope": "group",
            "dealer_group_id": str(dealer_group.id),
            "product_id": str(milk_pouch.id),
            "selling_price": "60",
        })
        assert response.status_code == 200
        assert Decimal(response.json()["final_price"]) == Decimal("60.00")

        response = client.get("/pricing/resolve", params={
            "party_id": str(dealer.id), "product_id": str(milk_pouch.id)
        })
        assert response.status_code == 200
        assert response.json()["source_priority"] == "group"
        assert Decimal(response.json()["unit_price"]) == Decimal("60.00")
