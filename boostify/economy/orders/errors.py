class OrderError(Exception):
    pass


class OrderValidationError(OrderError):
    pass


class OrderForbiddenError(OrderError):
    pass


class OrderNotFoundError(OrderError):
    pass


class OrderStateError(OrderError):
    def __init__(self, message: str, *, current_status: str) -> None:
        super().__init__(message)
        self.current_status = current_status


class OrderAlreadyClaimedError(OrderError):
    pass
