"""
Background tasks for ledger consistency checks
"""
from uuid import UUID
import logging

from dairydesk.core.celery import celery_app
from dairydesk.database.database import SessionLocal
from dairydesk.modules.parties.models import Party
from dairydesk.modules.receipts.ledger import LedgerService

logger = logging.getLogger(__name__)


def run_ledger_audit(db, tenant_id) -> dict:
    report = LedgerService(db).audit(UUID(str(tenant_id)))
    for drift in report.drifts:
        logger.warning(
            f"Ledger drift in {drift.entity} {drift.reference}: "
            f"{drift.field} stored={drift.stored} expected={drift.expected}"
        )
    return {
        "tenant_id": str(report.tenant_id),
        "documents_checked": report.documents_checked,
        "parties_checked": report.parties_checked,
        "drifts": len(report.drifts),
        "consistent": report.is_consistent,
    }


@celery_app.task(bind=True, max_retries=3)
def audit_tenant_ledger(self, tenant_id: str):
    """
    Comparar paid_amount / due_amount / saldos guardados contra recibos activos
    e historial de movimientos de una empresa
    """
    db = SessionLocal()
    try:
        return run_ledger_audit(db, tenant_id)
    except Exception as e:
        logger.error(f"Ledger audit failed for tenant {tenant_id}: {str(e)}", exc_info=True)
        raise self.retry(exc=e, countdown=60)
    finally:
        db.close()


@celery_app.task
def audit_all_tenants():
    """Periodic task: encola una auditoría por cada empresa con partes registradas"""
    db = SessionLocal()
    try:
        tenant_ids = [row[0] for row in db.query(Party.tenant_id).distinct().all()]
    finally:
        db.close()

    for tenant_id in tenant_ids:
        audit_tenant_ledger.delay(str(tenant_id))
    logger.info(f"Queued ledger audit for {len(tenant_ids)} tenants")
    return {"tenants": len(tenant_ids)}
