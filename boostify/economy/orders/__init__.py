from boostify.economy.orders.checkout import CheckoutService
from boostify.economy.orders.service import OrderService

__all__ = ["CheckoutService", "OrderService"]
