from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from uuid import UUID

from dairydesk.database.database import get_db
from dairydesk.common.middleware import get_tenant_id
from dairydesk.modules.products.service import ProductService
from dairydesk.modules.products.schemas import ProductCreate, ProductOut, ProductList

product_router = APIRouter(prefix="/products", tags=["Products"])


@product_router.post("/", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    """Crear producto con precios, GST y empaque por defecto"""
    return ProductService(db).create_product(product_data, tenant_id)


@product_router.get("/", response_model=ProductList)
def list_products(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    return ProductService(db).get_products(tenant_id, limit, offset)


@product_router.get("/{product_id}", response_model=ProductOut)
def get_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id)
):
    return ProductService(db).get_product(product_id, tenant_id)
