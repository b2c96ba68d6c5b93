"""
Agregación de totales de documento (pedido o factura)

Los descuentos de línea se aplican antes del impuesto (LineItemCalculator);
el descuento global y el ajuste personalizado se aplican después, sobre el
gran total con impuestos:

    total = gran_total - descuento_global [+|-] ajuste

El subtotal del documento se reporta neto del impuesto incluido en precios
inclusive, de modo que siempre se cumple:

    total = subtotal - descuento_items + impuesto - descuento_global [+|-] ajuste
"""

from decimal import Decimal
from typing import Iterable, Optional

from dairydesk.common.exceptions import ValidationError
from dairydesk.common.money import to_decimal, quantize_money, ZERO, HUNDRED
from dairydesk.modules.billing.calculator import LineItemCalculator
from dairydesk.modules.billing.schemas import (
    DocumentTotals, TaxBreakdown, GlobalDiscount, CustomAdjustment, PhysicalSummary,
    DiscountType, AdjustmentOperation, PaymentStatus
)


class DocumentTotalsAggregator:

    @staticmethod
    def aggregate(
        lines: Iterable,
        global_discount: Optional[GlobalDiscount] = None,
        custom_adjustment: Optional[CustomAdjustment] = None,
        paid_amount=ZERO
    ) -> DocumentTotals:
        """
        Sumar líneas y aplicar descuento global y ajuste

        Args:
            lines: objetos con line_subtotal, discount_amount, taxable_value,
                tax_amount, igst/cgst/sgst_amount y line_total (LineAmounts o
                filas de línea persistidas)
            global_discount: descuento sobre el gran total (porcentaje o fijo)
            custom_adjustment: ajuste con nombre; solo aplica con texto y monto != 0
            paid_amount: suma de recibos activos del documento

        Raises:
            ValidationError: si el total final resulta negativo
        """
        subtotal = ZERO
        item_discount = ZERO
        tax = TaxBreakdown()
        grand_total = ZERO

        for line in lines:
            subtotal += to_decimal(line.taxable_value) + to_decimal(line.discount_amount)
            item_discount += to_decimal(line.discount_amount)
            tax.igst += to_decimal(line.igst_amount)
            tax.cgst += to_decimal(line.cgst_amount)
            tax.sgst += to_decimal(line.sgst_amount)
            tax.total += to_decimal(line.tax_amount)
            grand_total += to_decimal(line.line_total)

        discount = DocumentTotalsAggregator.apply_global_discount(grand_total, global_discount)
        adjustment = DocumentTotalsAggregator.apply_custom_adjustment(grand_total, custom_adjustment)

        total = grand_total - discount.amount
        if adjustment.operation == AdjustmentOperation.ADD:
            total += adjustment.applied_amount
        else:
            total -= adjustment.applied_amount

        if total < 0:
            raise ValidationError(
                f"El total del documento no puede ser negativo ({total}); revise el descuento global y el ajuste"
            )

        paid_amount = quantize_money(paid_amount)
        return DocumentTotals(
            subtotal=subtotal,
            item_discount=item_discount,
            tax_breakdown=tax,
            grand_total=grand_total,
            global_discount=discount,
            custom_adjustment=adjustment,
            total=total,
            paid_amount=paid_amount,
            due_amount=DocumentTotalsAggregator.due_amount(total, paid_amount),
            payment_status=DocumentTotalsAggregator.payment_status(total, paid_amount),
        )

    @staticmethod
    def apply_global_discount(grand_total: Decimal, global_discount: Optional[GlobalDiscount]) -> GlobalDiscount:
        if global_discount is None:
            return GlobalDiscount(value=ZERO, amount=ZERO)

        value = to_decimal(global_discount.value)
        if value < 0 or (global_discount.type == DiscountType.PERCENTAGE and value > HUNDRED):
            raise ValidationError("El descuento global debe estar entre 0 y 100")

        if global_discount.type == DiscountType.PERCENTAGE:
            amount = quantize_money(grand_total * value / HUNDRED)
        else:
            amount = quantize_money(value)
        return GlobalDiscount(type=global_discount.type, value=value, amount=amount)

    @staticmethod
    def apply_custom_adjustment(grand_total: Decimal, adjustment: Optional[CustomAdjustment]) -> CustomAdjustment:
        if adjustment is None:
            return CustomAdjustment()
        amount = to_decimal(adjustment.amount)
        if amount < 0:
            raise ValidationError("El monto del ajuste no puede ser negativo")
        if adjustment.type == DiscountType.PERCENTAGE and amount > HUNDRED:
            raise ValidationError("El ajuste porcentual debe estar entre 0 y 100")

        applied = ZERO
        if adjustment.is_applicable:
            if adjustment.type == DiscountType.PERCENTAGE:
                applied = quantize_money(grand_total * to_decimal(adjustment.amount) / HUNDRED)
            else:
                applied = quantize_money(adjustment.amount)

        return CustomAdjustment(
            text=adjustment.text,
            amount=adjustment.amount,
            type=adjustment.type,
            operation=adjustment.operation,
            applied_amount=applied,
        )

    @staticmethod
    def due_amount(total, paid_amount) -> Decimal:
        return max(quantize_money(total) - quantize_money(paid_amount), ZERO)

    @staticmethod
    def payment_status(total, paid_amount) -> PaymentStatus:
        paid = quantize_money(paid_amount)
        if paid <= 0:
            return PaymentStatus.PENDING
        if paid < quantize_money(total):
            return PaymentStatus.PARTIAL
        return PaymentStatus.COMPLETED

    @staticmethod
    def physical_summary(lines: Iterable) -> PhysicalSummary:
        """Litros, kg y empaques de un conjunto de líneas con snapshot de empaque"""
        summary = PhysicalSummary()
        for line in lines:
            quantity = LineItemCalculator.physical_quantities(
                line.quantity,
                packaging_type=line.packaging_type,
                size_value=line.packaging_size_value,
                size_unit=line.packaging_size_unit,
                units_per_package=line.units_per_package,
            )
            summary.total_liters += quantity.liters
            summary.total_kg += quantity.kg
            summary.total_units += quantity.units
            summary.total_packages += quantity.packages
            if quantity.package_type:
                breakdown = summary.package_breakdown
                breakdown[quantity.package_type] = breakdown.get(quantity.package_type, ZERO) + quantity.packages
        return summary
