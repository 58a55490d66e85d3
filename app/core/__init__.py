"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps (stores, settlements).
Nothing in here knows about settlements or the payout provider.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - VersionedMixin: Optimistic locking version field

Services (import from core.services):
    - BaseService: Base class for service layer

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ConflictError: Lock and version conflicts

Views (import from core.views):
    - health_check: Database and cache health endpoint

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
    from core.services import BaseService

    class SellerAccount(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        ref_seller_id = models.CharField(max_length=100, unique=True)

Note:
    Submodules are imported directly (not re-exported here) so that this
    package can be imported before the app registry is ready.
"""
