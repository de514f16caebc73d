"""
Fund-split calculator for escrow holds.

Splits an order total between the seller, the delivery agent (when one is
assigned) and the platform. Pure integer arithmetic, no side effects.

Policy:
    driver_amount = floor(total * driver_percent / 100), or 0 without a driver
    seller_amount = floor(total * (100 - platform_percent - driver_percent) / 100)
    platform_fee  = total - seller_amount - driver_amount

The platform fee is computed last, so it absorbs every rounding remainder
and the three shares always add up to the total.

Usage:
    from vault.splits import split

    shares = split(10000, has_driver=True)
    # FundSplit(seller_amount=8000, driver_amount=1500, platform_fee=500)
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class FundSplit:
    """
    Result of splitting an escrow total.

    Attributes:
        seller_amount: Share credited to the seller on release
        driver_amount: Share credited to the delivery agent (0 without one)
        platform_fee: Share credited to the platform revenue wallet
    """

    seller_amount: int
    driver_amount: int
    platform_fee: int

    @property
    def total(self) -> int:
        """Sum of all shares."""
        return self.seller_amount + self.driver_amount + self.platform_fee

    def as_dict(self) -> dict[str, int]:
        """Shares keyed the way the action API reports released amounts."""
        return {
            "seller": self.seller_amount,
            "driver": self.driver_amount,
            "platform": self.platform_fee,
        }


def split(
    total_amount: int,
    has_driver: bool,
    platform_fee_percent: int | None = None,
    driver_fee_percent: int | None = None,
) -> FundSplit:
    """
    Split an order total into seller, driver and platform shares.

    Args:
        total_amount: Order total in the smallest currency unit (>= 0)
        has_driver: Whether a delivery agent is assigned to the order
        platform_fee_percent: Platform share in whole percent
            (defaults to settings.ESCROW_PLATFORM_FEE_PERCENT)
        driver_fee_percent: Driver share in whole percent
            (defaults to settings.ESCROW_DRIVER_FEE_PERCENT)

    Returns:
        FundSplit whose shares sum exactly to total_amount

    Raises:
        ValueError: If the total is negative or the percentages are out of range
    """
    if platform_fee_percent is None:
        platform_fee_percent = settings.ESCROW_PLATFORM_FEE_PERCENT
    if driver_fee_percent is None:
        driver_fee_percent = settings.ESCROW_DRIVER_FEE_PERCENT

    if total_amount < 0:
        raise ValueError("total_amount must not be negative")
    for name, percent in (
        ("platform_fee_percent", platform_fee_percent),
        ("driver_fee_percent", driver_fee_percent),
    ):
        if not 0 <= percent <= 100:
            raise ValueError(f"{name} must be between 0 and 100")

    applied_driver_percent = driver_fee_percent if has_driver else 0
    seller_percent = 100 - platform_fee_percent - applied_driver_percent
    if seller_percent < 0:
        raise ValueError("platform and driver percentages exceed 100")

    driver_amount = total_amount * applied_driver_percent // 100
    seller_amount = total_amount * seller_percent // 100
    platform_fee = total_amount - seller_amount - driver_amount

    return FundSplit(
        seller_amount=seller_amount,
        driver_amount=driver_amount,
        platform_fee=platform_fee,
    )
