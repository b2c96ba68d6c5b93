"""
Helper para cálculo de GST (India)

- IGST para ventas interestatales
- CGST + SGST para ventas intraestatales
- Nunca ambos a la vez: si IGST > 0 se usa solo IGST

Los cálculos son puros (sin acceso a base de datos) y usan Decimal.
"""

from decimal import Decimal
from typing import Union

from dairydesk.common.money import to_decimal, quantize_money, HUNDRED
from dairydesk.modules.taxes.schemas import TaxRates, TaxSplit, TaxComponents, TaxMethod


class TaxEngine:
    """Separa montos en base gravable e impuesto según el método del precio"""

    @staticmethod
    def total_rate(rates: TaxRates) -> Decimal:
        return rates.total_rate

    @staticmethod
    def split(
        amount,
        rates: TaxRates,
        method: Union[TaxMethod, str] = TaxMethod.EXCLUSIVE
    ) -> TaxSplit:
        """
        Separar un monto en base gravable + impuesto

        Args:
            amount: Monto de la línea (después de descuentos)
            rates: Tasas GST
            method: inclusive (el monto ya contiene el impuesto) o exclusive

        Returns:
            TaxSplit sin redondear; el redondeo se hace al persistir la línea
        """
        method = TaxMethod(method)
        amount = to_decimal(amount)
        rate = TaxEngine.total_rate(rates)

        if rate == 0:
            return TaxSplit(
                amount=amount, taxable_value=amount, tax_amount=Decimal('0'),
                total_rate=rate, method=method
            )

        if method == TaxMethod.INCLUSIVE:
            taxable_value = amount / (1 + rate / HUNDRED)
            tax_amount = amount - taxable_value
        else:
            taxable_value = amount
            tax_amount = amount * rate / HUNDRED

        return TaxSplit(
            amount=amount,
            taxable_value=taxable_value,
            tax_amount=tax_amount,
            total_rate=rate,
            method=method
        )

    @staticmethod
    def components(tax_amount, rates: TaxRates) -> TaxComponents:
        """
        Desglosar un impuesto ya calculado en IGST o CGST/SGST

        CGST y SGST se reparten proporcionalmente a sus tasas; SGST toma
        el residuo para que la suma sea exacta tras el redondeo.
        """
        tax_amount = quantize_money(tax_amount)
        if rates.igst > 0:
            return TaxComponents(igst=tax_amount)

        rate = rates.cgst + rates.sgst
        if rate == 0:
            return TaxComponents()

        cgst = quantize_money(tax_amount * rates.cgst / rate)
        return TaxComponents(cgst=cgst, sgst=tax_amount - cgst)
