import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="EscrowPayment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "is_deleted",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                    ),
                ),
                (
                    "deleted_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                    ),
                ),
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
                    "amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Gross amount held in smallest currency unit"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="kes",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "payment_reference",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Gateway receipt for the client payment",
                        max_length=255,
                    ),
                ),
                (
                    "state",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Held"),
                            ("disputed", "Disputed"),
                            ("released", "Released"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the escrow (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("platform_fee_cents", models.PositiveBigIntegerField(blank=True, null=True)),
                ("provider_amount_cents", models.PositiveBigIntegerField(blank=True, null=True)),
                ("released_at", models.DateTimeField(blank=True, null=True)),
                ("refund_reason", models.TextField(blank=True, default="")),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("dispute_reason", models.CharField(blank=True, default="", max_length=255)),
                (
                    "dispute_initiator",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("client", "Client"),
                            ("provider", "Provider"),
                            ("admin", "Admin"),
                        ],
                        default="",
                        max_length=20,
                    ),
                ),
                ("dispute_description", models.TextField(blank=True, default="")),
                ("dispute_raised_at", models.DateTimeField(blank=True, null=True)),
                (
                    "resolution_decision",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("release", "Release to Provider"),
                            ("refund", "Refund to Client"),
                        ],
                        default="",
                        max_length=20,
                    ),
                ),
                ("resolution_notes", models.TextField(blank=True, default="")),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("evidence", models.JSONField(blank=True, default=list)),
                (
                    "events",
                    models.JSONField(
                        blank=True, default=list, help_text="Append-only audit events"
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        help_text="Booking these funds were paid for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrow_payments",
                        to="bookings.booking",
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="client_escrows",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="provider_escrows",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "released_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "refunded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "resolved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Escrow Payment",
                "verbose_name_plural": "Escrow Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["client", "state"], name="escrow_client_state_idx"),
                    models.Index(fields=["provider", "state"], name="escrow_provider_state_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_deleted", False)),
                        fields=("booking",),
                        name="unique_active_escrow_per_booking",
                    ),
                    models.CheckConstraint(
                        check=models.Q(("amount_cents__gt", 0)),
                        name="escrow_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payout",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
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
                    "gross_amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Booking total in smallest currency unit"
                    ),
                ),
                (
                    "commission_rate",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Platform commission rate applied (e.g. 0.3000)",
                        max_digits=5,
                    ),
                ),
                ("commission_amount_cents", models.PositiveBigIntegerField()),
                (
                    "payout_amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Amount sent to the provider in smallest currency unit"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="kes",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "state",
                    django_fsm.FSMField(
                        choices=[
                            ("awaiting_payment", "Awaiting Client Payment"),
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payout (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("service_completed_at", models.DateTimeField()),
                (
                    "scheduled_at",
                    models.DateTimeField(
                        db_index=True,
                        help_text="Earliest time the sweep may send this payout",
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "payout_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("bank", "Bank Transfer"),
                            ("mobile_money", "Mobile Money"),
                        ],
                        default="",
                        max_length=20,
                    ),
                ),
                ("recipient_code", models.CharField(blank=True, default="", max_length=64)),
                (
                    "transfer_reference",
                    models.CharField(
                        blank=True,
                        help_text="Idempotency reference sent with the transfer",
                        max_length=100,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "transfer_id",
                    models.CharField(
                        blank=True,
                        help_text="Gateway transfer identifier",
                        max_length=100,
                        null=True,
                    ),
                ),
                ("failure_reason", models.TextField(blank=True, null=True)),
                ("attempt_count", models.PositiveIntegerField(default=0)),
                ("last_attempt_at", models.DateTimeField(blank=True, null=True)),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON metadata for extensibility",
                    ),
                ),
                (
                    "booking",
                    models.OneToOneField(
                        help_text="Booking this payout pays for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout",
                        to="bookings.booking",
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        help_text="Provider receiving the payout",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payouts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "escrow",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payouts",
                        to="payments.escrowpayment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payout",
                "verbose_name_plural": "Payouts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["provider", "state"], name="payout_provider_state_idx"),
                    models.Index(fields=["state", "scheduled_at"], name="payout_state_sched_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(("payout_amount_cents__gt", 0)),
                        name="payout_amount_positive",
                    ),
                ],
            },
        ),
    ]
