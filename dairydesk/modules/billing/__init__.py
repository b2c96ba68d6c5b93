"""
Módulo de Facturación (Pedidos y Facturas) - DairyDesk

- Cálculo de líneas: precio resuelto, descuento de línea y GST (IGST o CGST+SGST)
- Totales de documento: descuento global y ajuste personalizado sobre el gran total
- Cantidades físicas: litros, kg y empaques por línea y por documento
- Pedidos con cargo al saldo de la parte y anulación con reverso
- Facturas directas y facturas congeladas desde un pedido

Tablas principales:
- orders / order_line_items: Pedidos y snapshots de línea
- invoices / invoice_line_items: Facturas y snapshots de línea
- document_sequences: Numeración por empresa y tipo de documento
"""

from .models import Order, OrderLineItem, Invoice, InvoiceLineItem, DocumentSequence
from .calculator import LineItemCalculator
from .totals import DocumentTotalsAggregator

__all__ = [
    "Order", "OrderLineItem", "Invoice", "InvoiceLineItem", "DocumentSequence",
    "LineItemCalculator", "DocumentTotalsAggregator",
]
