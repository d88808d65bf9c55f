from __future__ import annotations

from fastapi import HTTPException, status

from boostify.economy.coupons.errors import CouponValidationError
from boostify.economy.escrow.errors import (
    EscrowAlreadyExistsError,
    EscrowError,
    EscrowNotFoundError,
    EscrowStateError,
)
from boostify.economy.orders.errors import (
    OrderAlreadyClaimedError,
    OrderError,
    OrderForbiddenError,
    OrderNotFoundError,
    OrderStateError,
    OrderValidationError,
)
from boostify.economy.wallet.errors import (
    DepositNotSucceededError,
    WalletError,
    WalletUserNotFoundError,
    WalletValidationError,
)
from boostify.services.payments import PaymentProcessorError

DOMAIN_ERRORS = (OrderError, EscrowError, WalletError, CouponValidationError, PaymentProcessorError)

_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (OrderAlreadyClaimedError, status.HTTP_409_CONFLICT),
    (EscrowAlreadyExistsError, status.HTTP_409_CONFLICT),
    (OrderForbiddenError, status.HTTP_403_FORBIDDEN),
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND),
    (WalletUserNotFoundError, status.HTTP_404_NOT_FOUND),
    (EscrowNotFoundError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (OrderStateError, status.HTTP_400_BAD_REQUEST),
    (EscrowStateError, status.HTTP_400_BAD_REQUEST),
    (OrderValidationError, status.HTTP_400_BAD_REQUEST),
    (WalletValidationError, status.HTTP_400_BAD_REQUEST),
    (CouponValidationError, status.HTTP_400_BAD_REQUEST),
    (DepositNotSucceededError, status.HTTP_400_BAD_REQUEST),
)


def as_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, PaymentProcessorError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Payment processor error",
        )
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc) or error_type.__name__)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )
