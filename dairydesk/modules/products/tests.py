"""
Tests para el módulo de Productos
"""

import pytest
from decimal import Decimal
from uuid import uuid4
from fastapi import HTTPException
from pydantic import ValidationError as PydanticValidationError

from dairydesk.modules.products.models import Product, PackagingType, TaxMethod
from dairydesk.modules.products.schemas import ProductCreate
from dairydesk.modules.products.service import ProductService


# ===== FIXTURES =====

@pytest.fixture
def sample_product_data():
    return {
        "name": "Buttermilk 200 ml",
        "sku": "BM-200",
        "selling_price": "12.00",
        "cgst": "2.5",
        "sgst": "2.5",
        "tax_method": "inclusive",
        "packaging_type": "pouch",
        "packaging_size_value": "200",
        "packaging_size_unit": "ml",
    }


# ===== TESTS DE VALIDACIÓN =====

class TestProductValidation:

    def test_igst_and_cgst_are_exclusive(self, sample_product_data):
        sample_product_data["igst"] = "5"
        with pytest.raises(PydanticValidationError):
            ProductCreate(**sample_product_data)

    def test_negative_price_rejected(self, sample_product_data):
        sample_product_data["selling_price"] = "-1"
        with pytest.raises(PydanticValidationError):
            ProductCreate(**sample_product_data)

    def test_multipack_detection(self):
        assert Product(packaging_type=PackagingType.CRATE).is_multipack
        assert not Product(packaging_type=PackagingType.POUCH).is_multipack


# ===== TESTS DE SERVICIO =====

class TestProductService:

    def test_create_product(self, db_session, tenant_id, sample_product_data):
        product = ProductService(db_session).create_product(ProductCreate(**sample_product_data), tenant_id)

        assert product.id is not None
        assert product.tax_method == TaxMethod.INCLUSIVE
        assert product.packaging_type == PackagingType.POUCH
        assert product.is_active

    def test_duplicate_sku(self, db_session, tenant_id, sample_product_data):
        service = ProductService(db_session)
        service.create_product(ProductCreate(**sample_product_data), tenant_id)

        with pytest.raises(HTTPException) as exc_info:
            service.create_product(ProductCreate(**sample_product_data), tenant_id)
        assert exc_info.value.status_code == 409

    def test_same_sku_other_tenant(self, db_session, tenant_id, sample_product_data):
        service = ProductService(db_session)
        service.create_product(ProductCreate(**sample_product_data), tenant_id)
        other = service.create_product(ProductCreate(**sample_product_data), uuid4())
        assert other.tenant_id != tenant_id

    def test_product_not_found(self, db_session, tenant_id):
        with pytest.raises(HTTPException) as exc_info:
            ProductService(db_session).get_product(uuid4(), tenant_id)
        assert exc_info.value.status_code == 404

    def test_inactive_products_hidden_from_list(self, db_session, tenant_id, milk_pouch, curd_crate):
        curd_crate.is_active = False
        db_session.commit()

        result = ProductService(db_session).get_products(tenant_id)
        assert result.total == 1
        assert result.items[0].sku == "MILK-500"


# ===== TESTS DE API =====

class TestProductApi:

    def test_create_and_list(self, client, sample_product_data):
        response = client.post("/products/", json=sample_product_data)
        assert response.status_code == 201
        assert response.json()["sku"] == "BM-200"

        response = client.get("/products/")
        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_invalid_gst_combination(self, client, sample_product_data):
        sample_product_data["igst"] = "5"
        response = client.post("/products/", json=sample_product_data)
        assert response.status_code == 422
