import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ProviderProfile",
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
                ("business_name", models.CharField(blank=True, default="", max_length=200)),
                ("bio", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending Approval"),
                            ("approved", "Approved"),
                            ("suspended", "Suspended"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "rating",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Average rating out of 5",
                        max_digits=3,
                        null=True,
                    ),
                ),
                ("review_count", models.PositiveIntegerField(default=0)),
                ("completed_jobs", models.PositiveIntegerField(default=0)),
                ("experience", models.CharField(blank=True, default="", max_length=255)),
                (
                    "service_areas",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Area names served, e.g. ['Westlands', 'Parklands'] or ['All Areas']",
                    ),
                ),
                ("skills", models.JSONField(blank=True, default=list)),
                (
                    "hourly_rate",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Hourly rate in major currency units",
                        null=True,
                    ),
                ),
                (
                    "emergency_service",
                    models.BooleanField(
                        default=True, help_text="Accepts emergency call-outs"
                    ),
                ),
                (
                    "payout_method",
                    models.CharField(
                        choices=[
                            ("bank", "Bank Account"),
                            ("mobile_money", "Mobile Money (M-Pesa)"),
                        ],
                        default="mobile_money",
                        max_length=20,
                    ),
                ),
                ("bank_account_number", models.CharField(blank=True, default="", max_length=34)),
                ("bank_code", models.CharField(blank=True, default="", max_length=20)),
                ("bank_account_name", models.CharField(blank=True, default="", max_length=200)),
                ("mobile_money_number", models.CharField(blank=True, default="", max_length=20)),
                (
                    "paystack_recipient_code",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Transfer recipient code (RCP_xxx) created at the gateway",
                        max_length=64,
                    ),
                ),
                (
                    "total_earnings_cents",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Cumulative paid-out earnings in minor units",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="provider_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Provider Profile",
                "verbose_name_plural": "Provider Profiles",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ProviderService",
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
                ("category", models.CharField(db_index=True, max_length=50)),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("base_price", models.PositiveIntegerField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "provider",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="provider_services",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["category", "is_active"],
                        name="provider_service_cat_idx",
                    )
                ],
            },
        ),
    ]
