"""
Stores app configuration.

Stores are the affiliated luggage-storage locations that receive payouts.
Store onboarding and management live outside this service; this app only
keeps the fields the settlement flow needs to address a payout.
"""

from django.apps import AppConfig


class StoresConfig(AppConfig):
    """Configuration for the stores application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "stores"
    verbose_name = "Stores"
