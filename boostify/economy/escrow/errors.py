class EscrowError(Exception):
    pass


class EscrowNotFoundError(EscrowError):
    pass


class EscrowAlreadyExistsError(EscrowError):
    pass


class EscrowStateError(EscrowError):
    def __init__(self, message: str, *, current_status: str) -> None:
        super().__init__(message)
        self.current_status = current_status
