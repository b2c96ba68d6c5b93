"""
Módulo de Recibos y Ledger de saldos - DairyDesk

- Recibos vinculados a un pedido o a una factura (nunca ambos)
- Estado de pago recalculado desde los recibos activos
- Edición con diferencia de monto y deshacer exacto (una sola vez)
- Historial de saldo por parte y auditoría periódica (Celery)

Tablas principales:
- receipts: Recibos de pago
- party_transactions: Movimientos del saldo (módulo parties)
"""

from .models import Receipt, ReceiptStatus, PaymentMode

__all__ = ["Receipt", "ReceiptStatus", "PaymentMode"]
