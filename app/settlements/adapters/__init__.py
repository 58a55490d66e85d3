"""
Payout provider adapters.

Adapters:
    EncryptedChannel: JWE encryption of provider payloads
    PayoutGateway: HTTP client for the provider's payout API
"""

from settlements.adapters.encryption import EncryptedChannel
from settlements.adapters.payout_gateway import (
    Balance,
    PayoutGateway,
    PayoutResult,
    SellerRegistrationResult,
)

__all__ = [
    "Balance",
    "EncryptedChannel",
    "PayoutGateway",
    "PayoutResult",
    "SellerRegistrationResult",
]
