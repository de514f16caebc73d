"""
Vault app: escrow settlement for marketplace orders.

This app handles:
- Holding a buyer's payment against an order (escrow)
- Releasing the held funds on delivery confirmation or timeout
- Crediting seller, driver and platform wallets through an append-only ledger
- Withdrawals from wallets to external payout channels
- Settlement notifications

Related apps:
    - authentication: User model for buyers, sellers, drivers and staff
    - marketplace: Order model the escrow is held against

Usage:
    from vault.services import EscrowService, WithdrawalService

    # Open a hold for a paid order
    escrow = EscrowService.create_hold(order_id, requested_by=buyer)

    # Buyer confirms delivery
    result = EscrowService.confirm_and_release(
        escrow.id, confirmation_code="A1B2C3", confirmed_by=buyer
    )
"""
