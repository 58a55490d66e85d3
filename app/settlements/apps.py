"""
Settlements app configuration.

This app settles revenue between the platform and affiliated stores:
- Fee split computation for each captured payment
- Idempotent, encrypted payout requests to the payout provider
- Webhook reconciliation of provider payout and seller status
- Bounded retry of transient provider failures
"""

from django.apps import AppConfig


class SettlementsConfig(AppConfig):
    """Configuration for the settlements application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "settlements"
    verbose_name = "Settlements"
