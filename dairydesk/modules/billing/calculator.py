"""
Cálculo de líneas de pedido / factura

Orden de aplicación por línea:
1. Subtotal = precio unitario x cantidad
2. Descuento de línea (porcentaje o fijo), nunca mayor al subtotal
3. GST sobre el monto ya descontado (IGST o CGST+SGST, nunca ambos)

También deriva cantidades físicas (litros, kg, unidades, empaques) a partir
del empaque del producto.
"""

from decimal import Decimal
from typing import Optional, Union

from dairydesk.common.exceptions import ValidationError
from dairydesk.common.money import to_decimal, quantize_money, ZERO, HUNDRED
from dairydesk.modules.billing.schemas import DiscountType, LineAmounts, PhysicalQuantity
from dairydesk.modules.taxes.calculator import TaxEngine
from dairydesk.modules.taxes.schemas import TaxRates, TaxMethod


# Factor de conversión a litros / kg por unidad de empaque
VOLUME_UNITS = {
    "ml": Decimal('0.001'),
    "l": Decimal('1'),
    "liter": Decimal('1'),
    "liters": Decimal('1'),
    "litre": Decimal('1'),
}
WEIGHT_UNITS = {
    "g": Decimal('0.001'),
    "gram": Decimal('0.001'),
    "grams": Decimal('0.001'),
    "kg": Decimal('1'),
    "kilo": Decimal('1'),
    "kilogram": Decimal('1'),
    "kilograms": Decimal('1'),
}

MULTIPACK_TYPES = {"crate", "carton", "bag", "box"}


class LineItemCalculator:

    @staticmethod
    def validate(quantity, unit_price, discount_type, discount_value) -> None:
        if quantity is None or to_decimal(quantity) <= 0:
            raise ValidationError("La cantidad debe ser mayor a 0")
        if to_decimal(unit_price) < 0:
            raise ValidationError("El precio unitario no puede ser negativo")

        value = to_decimal(discount_value)
        if DiscountType(discount_type) == DiscountType.PERCENTAGE:
            if value < 0 or value > HUNDRED:
                raise ValidationError("El descuento porcentual debe estar entre 0 y 100")
        elif value < 0:
            raise ValidationError("El descuento fijo no puede ser negativo")

    @staticmethod
    def calculate(
        unit_price,
        quantity,
        rates: TaxRates,
        tax_method: Union[TaxMethod, str] = TaxMethod.EXCLUSIVE,
        discount_type: Union[DiscountType, str] = DiscountType.PERCENTAGE,
        discount_value=0
    ) -> LineAmounts:
        """
        Calcular los montos de una línea

        Para productos con precio exclusive el impuesto se suma:
            line_total = (subtotal - descuento) + impuesto
        Para productos inclusive el impuesto se extrae del monto descontado:
            line_total = subtotal - descuento = base gravable + impuesto

        Raises:
            ValidationError: cantidad <= 0, precio negativo o descuento fuera de rango
        """
        LineItemCalculator.validate(quantity, unit_price, discount_type, discount_value)

        unit_price = to_decimal(unit_price)
        quantity = to_decimal(quantity)
        value = to_decimal(discount_value)
        rates = rates.normalized()
        method = TaxMethod(tax_method)

        line_subtotal = quantize_money(unit_price * quantity)
        if DiscountType(discount_type) == DiscountType.PERCENTAGE:
            discount_amount = quantize_money(line_subtotal * value / HUNDRED)
        else:
            discount_amount = quantize_money(value)
        discount_amount = min(discount_amount, line_subtotal)
        after_discount = line_subtotal - discount_amount

        split = TaxEngine.split(after_discount, rates, method)
        tax_amount = quantize_money(split.tax_amount)

        if method == TaxMethod.INCLUSIVE:
            line_total = after_discount
            taxable_value = line_total - tax_amount
        else:
            taxable_value = after_discount
            line_total = after_discount + tax_amount

        components = TaxEngine.components(tax_amount, rates)
        return LineAmounts(
            line_subtotal=line_subtotal,
            discount_amount=discount_amount,
            taxable_value=taxable_value,
            tax_amount=tax_amount,
            igst_amount=components.igst,
            cgst_amount=components.cgst,
            sgst_amount=components.sgst,
            line_total=line_total,
        )

    @staticmethod
    def physical_quantities(
        quantity,
        packaging_type: Optional[str] = None,
        size_value=None,
        size_unit: Optional[str] = None,
        units_per_package=None
    ) -> PhysicalQuantity:
        """
        Volumen y peso de una línea

        En empaques múltiples (crate, carton, bag, box) el tamaño corresponde a
        la unidad interna, por lo que se multiplica por units_per_package.
        """
        quantity = to_decimal(quantity)
        package_type = getattr(packaging_type, "value", packaging_type)
        package_type = package_type.lower() if package_type else None
        is_multipack = package_type in MULTIPACK_TYPES

        multiplier = Decimal('1')
        if is_multipack and units_per_package and to_decimal(units_per_package) > 0:
            multiplier = to_decimal(units_per_package)

        units = quantity * multiplier
        result = PhysicalQuantity(
            units=units,
            packages=quantity if is_multipack else ZERO,
            package_type=package_type if is_multipack else None,
        )

        size = to_decimal(size_value)
        unit = (size_unit or "").strip().lower()
        if size <= 0 or not unit:
            return result

        if unit in VOLUME_UNITS:
            result.liters = size * VOLUME_UNITS[unit] * units
        elif unit in WEIGHT_UNITS:
            result.kg = size * WEIGHT_UNITS[unit] * units
        return result
