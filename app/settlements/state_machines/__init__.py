"""
State machine enums for settlement models.

This module defines the state enums used by settlement models with django-fsm.
"""

from settlements.state_machines.states import (
    BusinessType,
    PayoutEventStatus,
    SellerStatus,
    SettlementStatus,
    WebhookEventStatus,
    WebhookEventType,
)

__all__ = [
    "BusinessType",
    "PayoutEventStatus",
    "SellerStatus",
    "SettlementStatus",
    "WebhookEventStatus",
    "WebhookEventType",
]
