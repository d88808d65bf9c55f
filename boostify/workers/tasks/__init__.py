from boostify.workers.tasks.refund_reconciliation import run_refund_reconciliation

__all__ = ["run_refund_reconciliation"]
