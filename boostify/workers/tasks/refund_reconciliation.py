from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog

from boostify.core.config import get_settings
from boostify.db.repo.payment_transactions_repo import PaymentTransactionsRepo
from boostify.db.repo.reconciliation_runs_repo import ReconciliationRunsRepo
from boostify.db.session import SessionLocal
from boostify.economy.escrow.service import EscrowService
from boostify.economy.escrow.types import RefundRetryResult
from boostify.services.alerts import send_ops_alert
from boostify.services.payments import get_payment_processor
from boostify.workers.asyncio_runner import run_async_job
from boostify.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)

RUN_TYPE = "refund_reconciliation"
TASK_NAME = "boostify.workers.tasks.refund_reconciliation.run_refund_reconciliation"


async def _retry_single_refund(escrow_id: UUID, *, max_attempts: int, now_utc: datetime) -> RefundRetryResult:
    async with SessionLocal.begin() as session:
        return await EscrowService.retry_failed_refund(
            session,
            escrow_id=escrow_id,
            processor=get_payment_processor(),
            max_attempts=max_attempts,
            now_utc=now_utc,
        )


async def run_refund_reconciliation_async(*, batch_size: int = 100) -> dict[str, int | str]:
    started_at = datetime.now(timezone.utc)
    max_attempts = get_settings().refund_reconciliation_max_attempts

    async with SessionLocal.begin() as session:
        escrow_ids = await PaymentTransactionsRepo.list_failed_refund_ids(
            session,
            max_attempts=max_attempts,
            limit=batch_size,
        )

    summary: dict[str, int] = {
        "examined": len(escrow_ids),
        "succeeded": 0,
        "failed": 0,
        "exhausted": 0,
        "skipped": 0,
        "errors": 0,
    }
    exhausted: list[dict[str, object]] = []

    for escrow_id in escrow_ids:
        try:
            result = await _retry_single_refund(escrow_id, max_attempts=max_attempts, now_utc=started_at)
        except Exception:
            summary["errors"] += 1
            logger.exception("refund_reconciliation_error", escrow_id=str(escrow_id))
            continue

        summary[result.outcome] += 1
        if result.outcome == "exhausted":
            exhausted.append(
                {
                    "escrow_id": str(result.escrow_id),
                    "refund_attempts": result.refund_attempts,
                    "error": result.error,
                }
            )

    diff_count = summary["failed"] + summary["exhausted"] + summary["errors"]
    status = "ok" if diff_count == 0 else "diff"
    async with SessionLocal.begin() as session:
        await ReconciliationRunsRepo.create(
            session,
            run_type=RUN_TYPE,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            status=status,
            diff_count=diff_count,
            summary={**summary, "exhausted_escrows": exhausted},
        )

    if exhausted:
        await send_ops_alert(
            event="refund_reconciliation_exhausted",
            payload={"escrows": exhausted, "max_attempts": max_attempts},
        )
    if summary["errors"] > 0:
        await send_ops_alert(event="refund_reconciliation_failed", payload=dict(summary))

    result: dict[str, int | str] = {**summary, "status": status}
    if diff_count > 0:
        logger.warning("refund_reconciliation_diff_detected", **result)
    else:
        logger.info("refund_reconciliation_finished", **result)
    return result


@celery_app.task(name=TASK_NAME)
def run_refund_reconciliation(batch_size: int = 100) -> dict[str, int | str]:
    return run_async_job(run_refund_reconciliation_async(batch_size=batch_size))


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "refund-reconciliation-every-10-minutes": {
            "task": TASK_NAME,
            "schedule": 600.0,
            "options": {"queue": "q_normal"},
        },
    }
)
