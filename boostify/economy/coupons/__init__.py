from boostify.economy.coupons.service import CouponService

__all__ = ["CouponService"]
