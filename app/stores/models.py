"""
Store model.

A Store is the affiliated shop that keeps luggage for customers and
receives the net share of every settlement. Only the identity and contact
fields needed for provider seller registration are stored here.

Usage:
    from stores.models import Store

    store = Store.objects.create(
        name="Hongdae Luggage",
        address="Seoul, Mapo-gu ...",
        phone_number="010-1234-5678",
        email="owner@example.com",
    )
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class Store(UUIDPrimaryKeyMixin, BaseModel):
    """
    Affiliated luggage-storage location.

    Fields:
        name: Display name, sent to the provider as the seller's store name
        address: Street address (optional for provider registration)
        phone_number: Contact phone number
        email: Contact e-mail
        is_active: Inactive stores cannot receive new settlements
    """

    name = models.CharField(
        max_length=200,
        help_text="Store display name",
    )

    address = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Street address of the store",
    )

    phone_number = models.CharField(
        max_length=30,
        blank=True,
        default="",
        help_text="Contact phone number",
    )

    email = models.EmailField(
        blank=True,
        default="",
        help_text="Contact e-mail address",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Inactive stores cannot receive new settlements",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Store"
        verbose_name_plural = "Stores"

    def __str__(self) -> str:
        return f"Store({self.id}, {self.name})"
