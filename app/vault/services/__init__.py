"""
Vault services.

- EscrowService: hold creation, delivery confirmation, timeout release
- WithdrawalService: wallet withdrawals and payout settlement
"""

from vault.services.escrow_service import EscrowService, ReleaseResult
from vault.services.withdrawal_service import (
    WithdrawalService,
    calculate_fee,
    processing_time,
)

__all__ = [
    "EscrowService",
    "ReleaseResult",
    "WithdrawalService",
    "calculate_fee",
    "processing_time",
]
