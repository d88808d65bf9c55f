class WalletError(Exception):
    pass


class WalletValidationError(WalletError):
    pass


class DepositBelowMinimumError(WalletValidationError):
    pass


class InsufficientBalanceError(WalletValidationError):
    pass


class WalletUserNotFoundError(WalletError):
    pass


class DepositNotSucceededError(WalletError):
    pass
