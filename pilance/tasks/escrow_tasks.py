import asyncio

from pilance.common.logging import get_logger
from pilance.tasks.celery_app import app

logger = get_logger("tasks.escrow")


def _run_async(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@app.task(name="pilance.tasks.escrow_tasks.reconcile_escrow_holds")
def reconcile_escrow_holds():
    """Celery Beat task: release holds whose Pi payment has settled."""
    logger.info("Reconciling escrow holds with the Pi rail")

    async def _reconcile():
        from pilance.core.escrow.service import EscrowService
        from pilance.db.repositories import SqlLedger
        from pilance.db.session import async_session_factory
        from pilance.integrations.pi_network import PiNetworkClient

        async with async_session_factory() as db:
            try:
                service = EscrowService(SqlLedger(db))
                completed = await service.reconcile_held(PiNetworkClient())
                await db.commit()

                if completed:
                    logger.info("Released %d settled escrow holds", len(completed))
                return completed
            except Exception as e:
                await db.rollback()
                logger.error("Escrow reconciliation failed: %s", e)
                raise

    return _run_async(_reconcile())
