import structlog

from arcade.payments.invoices import InvoiceStore
from arcade.timers import run_periodically

logger = structlog.get_logger()


async def run_maintenance_tasks(invoices: InvoiceStore, interval_seconds: float = 60):
    """Background task that evicts expired invoices"""
    logger.info("maintenance_tasks_started", interval=interval_seconds)
    await run_periodically(interval_seconds, invoices.sweep_expired, name="invoice_sweep")
