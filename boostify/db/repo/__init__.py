from boostify.db.repo.balance_transactions_repo import BalanceTransactionsRepo
from boostify.db.repo.chats_repo import ChatsRepo
from boostify.db.repo.coupons_repo import CouponsRepo
from boostify.db.repo.orders_repo import OrdersRepo
from boostify.db.repo.payment_transactions_repo import PaymentTransactionsRepo
from boostify.db.repo.reconciliation_runs_repo import ReconciliationRunsRepo
from boostify.db.repo.users_repo import UsersRepo

__all__ = [
    "BalanceTransactionsRepo",
    "ChatsRepo",
    "CouponsRepo",
    "OrdersRepo",
    "PaymentTransactionsRepo",
    "ReconciliationRunsRepo",
    "UsersRepo",
]
