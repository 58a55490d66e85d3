"""
Service layer base class.

Services hold business operations that span several models or reach out to
external systems. They are stateless classes of classmethods; views and
Celery tasks call them, never the other way round.

Usage:
    from core.services import BaseService

    class SettlementService(BaseService):
        @classmethod
        def cancel_settlement(cls, settlement_id):
            with cls.atomic():
                settlement = Settlement.objects.select_for_update().get(id=settlement_id)
                settlement.cancel()
                settlement.save()

            cls.get_logger().info("Settlement cancelled", extra={"settlement_id": str(settlement_id)})
            return settlement

Design Notes:
    - Use @classmethod (no instance state)
    - Raise domain exceptions (core.exceptions subclasses) for failures;
      the API layer converts them with to_dict()
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator

from django.db import transaction


class BaseService:
    """
    Base class for service layer classes.

    Provides:
    - A logger per service class
    - Explicit transaction boundaries
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for easy filtering.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        If any operation inside the block fails, all changes are rolled back.
        A thin wrapper around transaction.atomic() that makes transaction
        boundaries explicit in service code.
        """
        with transaction.atomic():
            yield


__all__ = ["BaseService"]
