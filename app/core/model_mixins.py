"""
Model mixins providing reusable functionality for Django models.

This module contains abstract mixin classes that can be combined with
BaseModel. They carry no settlement logic of their own.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    VersionedMixin: Optimistic locking version, incremented on every save

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin

    class Settlement(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        order_id = models.CharField(max_length=100)

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models
from django.db.models import F

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Settlement IDs double as the provider's refPayoutId and Idempotency-Key,
    so they must be unique across every environment that talks to the
    provider, not only within one database.

    Fields:
        id: UUIDField as primary key (auto-generated)

    Usage:
        settlement = Settlement.objects.create(...)
        settlement.id  # UUID like: 550e8400-e29b-41d4-a716-446655440000
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Optimistic locking version for rows that several writers update.

    The version is incremented in the database (F expression) on every
    update and read back afterwards, so two writers that loaded the same
    version can detect each other. Pair with
    settlements.locks.lock_for_update(..., expected_version=...) to reject
    stale writes.

    Fields:
        version: Starts at 1, +1 on each save after the first

    Usage:
        account = SellerAccount.objects.get(pk=account_id)
        account.version  # 1
        account.save()
        account.version  # 2
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        abstract = True

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Save with version auto-increment for optimistic locking."""
        is_update = self.pk and not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])
