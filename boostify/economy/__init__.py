from boostify.economy.coupons import CouponService
from boostify.economy.escrow import EscrowService
from boostify.economy.orders import CheckoutService, OrderService
from boostify.economy.wallet import WalletService

__all__ = [
    "CheckoutService",
    "CouponService",
    "EscrowService",
    "OrderService",
    "WalletService",
]
