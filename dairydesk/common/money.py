"""
Helpers de redondeo monetario
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

ZERO = Decimal('0.00')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')


def to_decimal(value, default: Decimal = ZERO) -> Decimal:
    """Convertir a Decimal vía str para no arrastrar errores de float"""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def quantize_money(value) -> Decimal:
    """Redondear a 2 decimales usando ROUND_HALF_UP (redondeo comercial)"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
