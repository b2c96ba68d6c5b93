"""
Fixtures compartidas para los tests de DairyDesk

Los tests usan SQLite en memoria (StaticPool): el esquema se crea y se
elimina en cada test para aislar los datos.
"""

import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEBUG"] = "false"

import pytest
from decimal import Decimal
from uuid import uuid4
from fastapi.testclient import TestClient

from dairydesk.main import app
from dairydesk.core.config import settings
from dairydesk.database.database import Base, engine, SessionLocal, get_db
from dairydesk.modules.parties.models import Party, PartyType, DealerGroup
from dairydesk.modules.products.models import Product, TaxMethod, PackagingType


# ===== FIXTURES =====

@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def tenant_id():
    return uuid4()


@pytest.fixture
def client(db_session, tenant_id):
    """TestClient con la sesión de test y el header de empresa"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, headers={"X-Company-ID": str(tenant_id)}) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def ledger_settings():
    """Restaura los flags del ledger después de cada test que los modifique"""
    original = (settings.ALLOW_OVERPAYMENT, settings.ENFORCE_CREDIT_LIMIT)
    yield settings
    settings.ALLOW_OVERPAYMENT, settings.ENFORCE_CREDIT_LIMIT = original


@pytest.fixture
def milk_pouch(db_session, tenant_id):
    """Leche en pouch de 500 ml, precio exclusive con CGST 2.5 + SGST 2.5"""
    product = Product(
        tenant_id=tenant_id,
        name="Toned Milk 500 ml",
        sku="MILK-500",
        selling_price=Decimal("30.00"),
        cost_price=Decimal("24.00"),
        cgst=Decimal("2.5"),
        sgst=Decimal("2.5"),
        tax_method=TaxMethod.EXCLUSIVE,
        packaging_type=PackagingType.POUCH,
        packaging_size_value=Decimal("500"),
        packaging_size_unit="ml",
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def curd_crate(db_session, tenant_id):
    """Crate de 12 cups de 400 g, precio inclusive con CGST 9 + SGST 9"""
    product = Product(
        tenant_id=tenant_id,
        name="Curd Cup Crate",
        sku="CURD-CRATE",
        selling_price=Decimal("100.00"),
        cost_price=Decimal("80.00"),
        cgst=Decimal("9"),
        sgst=Decimal("9"),
        tax_method=TaxMethod.INCLUSIVE,
        packaging_type=PackagingType.CRATE,
        packaging_size_value=Decimal("400"),
        packaging_size_unit="g",
        units_per_package=Decimal("12"),
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def ghee_jar(db_session, tenant_id):
    """Ghee de 1 kg con IGST 12, precio exclusive"""
    product = Product(
        tenant_id=tenant_id,
        name="Ghee Jar 1 kg",
        sku="GHEE-1KG",
        selling_price=Decimal("500.00"),
        cost_price=Decimal("420.00"),
        igst=Decimal("12"),
        tax_method=TaxMethod.EXCLUSIVE,
        packaging_type=PackagingType.JAR,
        packaging_size_value=Decimal("1"),
        packaging_size_unit="kg",
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def dealer_group(db_session, tenant_id):
    group = DealerGroup(
        tenant_id=tenant_id,
        code="NORTH",
        name="North Zone Dealers",
        discount_percentage=Decimal("0"),
        credit_limit=Decimal("50000.00"),
    )
    db_session.add(group)
    db_session.commit()
    db_session.refresh(group)
    return group


@pytest.fixture
def dealer(db_session, tenant_id, dealer_group):
    party = Party(
        tenant_id=tenant_id,
        party_type=PartyType.DEALER,
        code="DLR-001",
        name="Sri Lakshmi Dairy Agency",
        dealer_group_id=dealer_group.id,
        opening_balance=Decimal("0"),
        current_balance=Decimal("0"),
        credit_limit=Decimal("50000.00"),
    )
    db_session.add(party)
    db_session.commit()
    db_session.refresh(party)
    return party


@pytest.fixture
def customer(db_session, tenant_id):
    party = Party(
        tenant_id=tenant_id,
        party_type=PartyType.CUSTOMER,
        code="CUS-001",
        name="Hotel Annapoorna",
        opening_balance=Decimal("0"),
        current_balance=Decimal("0"),
        discount_percentage=Decimal("5"),
    )
    db_session.add(party)
    db_session.commit()
    db_session.refresh(party)
    return party
