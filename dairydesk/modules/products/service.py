from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from uuid import UUID
import logging

from dairydesk.common.exceptions import NotFoundError, ConflictError
from dairydesk.modules.products.models import Product, TaxMethod, PackagingType
from dairydesk.modules.products.schemas import ProductCreate, ProductList

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, db: Session):
        self.db = db

    def create_product(self, product_data: ProductCreate, tenant_id: UUID) -> Product:
        """Crear un producto del catálogo"""
        try:
            existing = self.db.query(Product).filter(
                Product.tenant_id == tenant_id,
                Product.sku == product_data.sku
            ).first()
            if existing:
                raise ConflictError(f"Ya existe un producto con el SKU {product_data.sku}")

            product = Product(
                tenant_id=tenant_id,
                name=product_data.name,
                sku=product_data.sku,
                selling_price=product_data.selling_price,
                cost_price=product_data.cost_price,
                igst=product_data.igst,
                cgst=product_data.cgst,
                sgst=product_data.sgst,
                tax_method=TaxMethod(product_data.tax_method.value),
                packaging_type=PackagingType(product_data.packaging_type.value) if product_data.packaging_type else None,
                packaging_size_value=product_data.packaging_size_value,
                packaging_size_unit=product_data.packaging_size_unit,
                units_per_package=product_data.units_per_package,
            )
            self.db.add(product)
            self.db.commit()
            self.db.refresh(product)
            return product

        except HTTPException:
            raise
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"Ya existe un producto con el SKU {product_data.sku}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating product: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creando producto: {str(e)}"
            )

    def get_product(self, product_id: UUID, tenant_id: UUID) -> Product:
        product = self.db.query(Product).filter(
            Product.id == product_id,
            Product.tenant_id == tenant_id
        ).first()
        if not product:
            raise NotFoundError(f"Producto {product_id} no encontrado")
        return product

    def get_products(self, tenant_id: UUID, limit: int = 100, offset: int = 0) -> ProductList:
        query = self.db.query(Product).filter(
            Product.tenant_id == tenant_id,
            Product.is_active.is_(True)
        ).order_by(Product.name)
        total = query.count()
        return ProductList(items=query.offset(offset).limit(limit).all(), total=total)
