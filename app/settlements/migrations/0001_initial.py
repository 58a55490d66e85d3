import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("stores", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="ProviderWebhookEvent",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "event_id",
                    models.CharField(
                        help_text="Provider event ID - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("payout.changed", "Payout Changed"),
                            ("seller.changed", "Seller Changed"),
                        ],
                        db_index=True,
                        help_text="Provider event type",
                        max_length=50,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(
                        default=dict,
                        help_text="Event body as received from the provider",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processed", "Processed"),
                            ("ignored", "Ignored"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "result_message",
                    models.TextField(blank=True, default="", help_text="Outcome description"),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the event reached a final status",
                        null=True,
                    ),
                ),
                (
                    "attempts",
                    models.PositiveSmallIntegerField(default=0, help_text="Number of handler runs"),
                ),
            ],
            options={
                "verbose_name": "Provider Webhook Event",
                "verbose_name_plural": "Provider Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
                    models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SellerAccount",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "store",
                    models.OneToOneField(
                        help_text="Store this seller account belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="seller_account",
                        to="stores.store",
                    ),
                ),
                (
                    "ref_seller_id",
                    models.CharField(
                        help_text="Reference seller ID sent to the provider (mirrors store ID)",
                        max_length=100,
                        unique=True,
                    ),
                ),
                (
                    "external_seller_id",
                    models.CharField(
                        blank=True,
                        help_text="Provider seller ID (assigned once after registration)",
                        max_length=100,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "business_type",
                    models.CharField(
                        choices=[
                            ("INDIVIDUAL_BUSINESS", "Individual Business"),
                            ("CORPORATE", "Corporate"),
                        ],
                        help_text="Business category of the seller",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("APPROVAL_REQUIRED", "Approval Required"),
                            ("PARTIALLY_APPROVED", "Partially Approved"),
                            ("KYC_REQUIRED", "KYC Required"),
                            ("APPROVED", "Approved"),
                            ("REJECTED", "Rejected"),
                            ("SUSPENDED", "Suspended"),
                        ],
                        db_index=True,
                        default="APPROVAL_REQUIRED",
                        help_text="Provider approval status",
                        max_length=20,
                    ),
                ),
                (
                    "registered_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="When the seller registration was created",
                    ),
                ),
                (
                    "approved_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="First time the seller became payout-eligible",
                        null=True,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
            ],
            options={
                "verbose_name": "Seller Account",
                "verbose_name_plural": "Seller Accounts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "registered_at"], name="seller_status_registered_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Settlement",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "store",
                    models.ForeignKey(
                        help_text="Store receiving the net share",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="settlements",
                        to="stores.store",
                    ),
                ),
                (
                    "order_id",
                    models.CharField(
                        help_text="Order this settlement belongs to (one settlement per order)",
                        max_length=100,
                        unique=True,
                    ),
                ),
                (
                    "original_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Captured (gross) payment amount",
                        max_digits=19,
                    ),
                ),
                (
                    "platform_fee_rate",
                    models.DecimalField(
                        decimal_places=4,
                        default="0.2000",
                        help_text="Platform fee rate applied to the gross amount",
                        max_digits=5,
                    ),
                ),
                (
                    "platform_fee",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Platform fee (gross x rate, rounded half-up)",
                        max_digits=19,
                    ),
                ),
                (
                    "settlement_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Net amount paid out to the store",
                        max_digits=19,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("PROCESSING", "Processing"),
                            ("COMPLETED", "Completed"),
                            ("FAILED", "Failed"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        db_index=True,
                        default="PENDING",
                        help_text="Current state of the settlement (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "external_payout_id",
                    models.CharField(
                        blank=True,
                        help_text="Provider payout ID",
                        max_length=100,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "external_seller_id",
                    models.CharField(
                        blank=True,
                        help_text="Provider seller ID the payout was sent to",
                        max_length=100,
                        null=True,
                    ),
                ),
                (
                    "requested_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="When the settlement was requested",
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(blank=True, help_text="When the payout completed", null=True),
                ),
                (
                    "error_message",
                    models.TextField(blank=True, help_text="Last failure reason", null=True),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of failed attempts (bounded by 3)",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(blank=True, default=dict, help_text="Arbitrary JSON metadata"),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
            ],
            options={
                "verbose_name": "Settlement",
                "verbose_name_plural": "Settlements",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["store", "status"], name="settlement_store_status_idx"),
                    models.Index(fields=["store", "created_at"], name="settlement_store_created_idx"),
                    models.Index(fields=["status", "retry_count"], name="settlement_status_retry_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(original_amount__gt=0),
                        name="settlement_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(retry_count__lte=3),
                        name="settlement_retry_count_bounded",
                    ),
                ],
            },
        ),
    ]
