from boostify.economy.escrow.service import EscrowService

__all__ = ["EscrowService"]
