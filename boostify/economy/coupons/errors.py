class CouponError(Exception):
    pass


class CouponValidationError(CouponError):
    pass
