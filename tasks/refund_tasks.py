"""
tasks/refund_tasks.py
Celery task that settles bookings left in REFUND_PENDING.

Idempotent: a row that was already settled is no longer selected.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Dict

from config.database import build_engine, build_sessionmaker, get_db_context
from config.settings import get_settings
from services.booking.refunds import reconcile_pending_refunds
from services.payment.client import LemonSqueezyClient
from tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _reconcile() -> Dict[str, int]:
    settings = get_settings()
    # Fresh engine per run: asyncio.run() gives every invocation its own loop.
    engine = build_engine(settings.DATABASE_URL, for_task=True)
    try:
        async with get_db_context(build_sessionmaker(engine)) as db:
            return await reconcile_pending_refunds(
                db,
                LemonSqueezyClient(settings),
                older_than=timedelta(minutes=settings.REFUND_RECONCILE_AFTER_MINUTES),
            )
    finally:
        await engine.dispose()


@celery_app.task(name="tasks.refund_tasks.reconcile_refunds")
def reconcile_refunds() -> Dict[str, int]:
    counts = asyncio.run(_reconcile())
    if any(counts.values()):
        logger.info(f"Refund reconciliation: {counts}")
    return counts
