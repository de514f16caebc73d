"""
Marketplace application.

Holds the order record written by the order workflow. The vault reads an
order when a hold is created and marks it completed when the hold is
released; everything else about orders (checkout, cancellation, catalogue)
lives outside this service.

Usage:
    from marketplace.models import Order, OrderStatus
"""
