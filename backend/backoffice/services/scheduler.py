"""
Background jobs run from the application lifespan
"""
from datetime import date
from typing import Dict, Optional
import asyncio
import logging

from backoffice.core.config import settings
from backoffice.core.database import SessionLocal
from backoffice.services.cheque_service import ChequeService

logger = logging.getLogger(__name__)


def run_cheque_sweep(today: Optional[date] = None, session_factory=SessionLocal) -> Dict[str, int]:
    """Run one cheque due-status sweep in its own transaction"""
    db = session_factory()
    try:
        result = ChequeService(db).sweep_statuses(today)
        db.commit()
        return result
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


async def cheque_sweep_loop(interval_minutes: Optional[int] = None):
    """Sweep cheque statuses every ``interval_minutes`` until cancelled"""
    interval = (interval_minutes or settings.CHEQUE_SWEEP_INTERVAL_MINUTES) * 60
    logger.info(f"Cheque sweep scheduled every {interval // 60} minutes")

    while True:
        try:
            result = await asyncio.to_thread(run_cheque_sweep)
            logger.info(
                f"Cheque sweep done: {result['due_today']} due today, {result['overdue']} overdue"
            )
        except Exception as e:
            logger.error(f"Cheque sweep failed: {e}", exc_info=True)
        await asyncio.sleep(interval)


def start_scheduler() -> asyncio.Task:
    return asyncio.create_task(cheque_sweep_loop(), name="cheque-sweep")


async def stop_scheduler(task: Optional[asyncio.Task]):
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.info("Cheque sweep stopped")
