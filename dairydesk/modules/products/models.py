from dairydesk.database.database import Base
from sqlalchemy import Column, String, Boolean, Numeric, Enum, UniqueConstraint, Uuid
from uuid import uuid4
from dairydesk.common.mixins import TenantMixin, TimestampMixin
import enum


class TaxMethod(str, enum.Enum):
    INCLUSIVE = "inclusive"  # El precio ya incluye el impuesto
    EXCLUSIVE = "exclusive"  # El impuesto se suma sobre el precio


class PackagingType(str, enum.Enum):
    POUCH = "pouch"
    BOTTLE = "bottle"
    CUP = "cup"
    TETRA_PACK = "tetra-pack"
    CAN = "can"
    JAR = "jar"
    CRATE = "crate"
    CARTON = "carton"
    BAG = "bag"
    BOX = "box"


# Empaques que agrupan varias unidades del producto base
MULTIPACK_TYPES = {PackagingType.CRATE, PackagingType.CARTON, PackagingType.BAG, PackagingType.BOX}


class Product(Base, TenantMixin, TimestampMixin):
    __tablename__ = "products"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    sku = Column(String(50), nullable=False)

    # Precios por defecto (se pueden sobreescribir por dealer o grupo)
    selling_price = Column(Numeric(15, 2), nullable=True)
    cost_price = Column(Numeric(15, 2), nullable=True)

    # GST: igst para ventas interestatales, cgst+sgst para intraestatales
    igst = Column(Numeric(5, 2), nullable=True)
    cgst = Column(Numeric(5, 2), nullable=True)
    sgst = Column(Numeric(5, 2), nullable=True)
    tax_method = Column(Enum(TaxMethod), nullable=False, default=TaxMethod.EXCLUSIVE)

    # Empaque: tipo + tamaño (ej. pouch 500 ml, crate de 12 x 1 l)
    packaging_type = Column(Enum(PackagingType), nullable=True)
    packaging_size_value = Column(Numeric(10, 3), nullable=True)
    packaging_size_unit = Column(String(20), nullable=True)
    units_per_package = Column(Numeric(10, 3), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_product_tenant_sku"),
    )

    @property
    def is_multipack(self) -> bool:
        return self.packaging_type in MULTIPACK_TYPES
