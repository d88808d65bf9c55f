from boostify.db.models.balance_transactions import BalanceTransaction
from boostify.db.models.chats import Chat
from boostify.db.models.coupon_usages import CouponUsage
from boostify.db.models.coupons import Coupon
from boostify.db.models.messages import Message
from boostify.db.models.orders import Order
from boostify.db.models.payment_transactions import PaymentTransaction
from boostify.db.models.reconciliation_runs import ReconciliationRun
from boostify.db.models.users import User

__all__ = [
    "BalanceTransaction",
    "Chat",
    "Coupon",
    "CouponUsage",
    "Message",
    "Order",
    "PaymentTransaction",
    "ReconciliationRun",
    "User",
]
