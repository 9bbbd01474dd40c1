"""
Payment admin configuration.

Escrows and payouts are read-mostly here: state moves only through the
services, so status fields are read-only and deletion is disabled.
"""

from django.contrib import admin, messages

from bookings.services import BookingService
from core.exceptions import BaseApplicationError
from payments.models import EscrowPayment, Payout
from payments.services import PayoutService
from payments.state_machines import DisputeDecision

__all__ = ["EscrowPaymentAdmin", "PayoutAdmin"]


def _money(amount_cents, currency) -> str:
    if amount_cents is None:
        return "-"
    return f"{amount_cents / 100:.2f} {currency.upper()}"


@admin.register(EscrowPayment)
class EscrowPaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for EscrowPayment.

    Provides visibility into held funds, disputes and the audit trail. The
    actions settle funds still held for cancelled bookings.
    """

    list_display = [
        "id",
        "booking",
        "client",
        "provider",
        "amount_display",
        "state",
        "created_at",
    ]
    list_filter = ["state", "currency", "dispute_initiator", "created_at"]
    actions = ["release_selected", "refund_selected"]
    search_fields = [
        "id",
        "payment_reference",
        "booking__booking_number",
        "client__email",
        "provider__email",
    ]
    readonly_fields = [
        "id",
        "state",
        "version",
        "refunded_amount_cents",
        "evidence",
        "events",
        "released_at",
        "refunded_at",
        "dispute_raised_at",
        "resolved_at",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["booking", "client", "provider", "released_by", "refunded_by", "resolved_by"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "booking", "client", "provider", "state")}),
        (
            "Amount",
            {
                "fields": (
                    "amount_cents",
                    "currency",
                    "payment_reference",
                    "platform_fee_cents",
                    "provider_amount_cents",
                    "refunded_amount_cents",
                ),
            },
        ),
        (
            "Settlement",
            {
                "fields": (
                    "released_by",
                    "released_at",
                    "refunded_by",
                    "refunded_at",
                    "refund_reason",
                ),
            },
        ),
        (
            "Dispute",
            {
                "fields": (
                    "dispute_reason",
                    "dispute_initiator",
                    "dispute_description",
                    "dispute_raised_at",
                    "resolution_decision",
                    "resolution_notes",
                    "resolved_by",
                    "resolved_at",
                    "evidence",
                ),
                "classes": ("collapse",),
            },
        ),
        ("Audit", {"fields": ("events", "version"), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    def amount_display(self, obj: EscrowPayment) -> str:
        return _money(obj.amount_cents, obj.currency)

    amount_display.short_description = "Amount"

    def _settle(self, request, queryset, decision: str, verb: str) -> None:
        settled = 0
        for escrow in queryset:
            try:
                BookingService.settle_cancelled_payment(
                    escrow.booking_id, decision, actor=request.user
                )
            except BaseApplicationError as e:
                self.message_user(request, f"{escrow.id}: {e.message}", messages.WARNING)
                continue
            settled += 1
        if settled:
            self.message_user(request, f"{settled} escrow(s) {verb}.", messages.SUCCESS)

    @admin.action(description="Release held funds of cancelled bookings")
    def release_selected(self, request, queryset):
        self._settle(request, queryset, DisputeDecision.RELEASE, "released")

    @admin.action(description="Refund held funds of cancelled bookings")
    def refund_selected(self, request, queryset):
        self._settle(request, queryset, DisputeDecision.REFUND, "refunded")

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payout.

    Provides visibility into payout status and history, plus operator
    actions for re-queueing failed payouts and cancelling unsent ones.
    """

    list_display = [
        "id",
        "booking",
        "provider",
        "payout_display",
        "state",
        "scheduled_at",
        "attempt_count",
        "created_at",
    ]
    list_filter = ["state", "currency", "payout_method", "created_at"]
    search_fields = [
        "id",
        "transfer_reference",
        "transfer_id",
        "booking__booking_number",
        "provider__email",
    ]
    readonly_fields = [
        "id",
        "state",
        "gross_amount_cents",
        "commission_rate",
        "commission_amount_cents",
        "payout_amount_cents",
        "processed_at",
        "completed_at",
        "failed_at",
        "cancelled_at",
        "transfer_reference",
        "transfer_id",
        "attempt_count",
        "last_attempt_at",
        "version",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["booking", "provider", "client", "escrow"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["requeue_selected", "cancel_selected"]

    fieldsets = (
        (None, {"fields": ("id", "booking", "provider", "client", "escrow", "state")}),
        (
            "Amount",
            {
                "fields": (
                    "gross_amount_cents",
                    "commission_rate",
                    "commission_amount_cents",
                    "payout_amount_cents",
                    "currency",
                ),
            },
        ),
        (
            "Transfer",
            {
                "fields": (
                    "payout_method",
                    "recipient_code",
                    "transfer_reference",
                    "transfer_id",
                    "attempt_count",
                    "last_attempt_at",
                ),
            },
        ),
        (
            "Status Timestamps",
            {
                "fields": (
                    "service_completed_at",
                    "scheduled_at",
                    "processed_at",
                    "completed_at",
                    "failed_at",
                    "cancelled_at",
                ),
            },
        ),
        ("Failure Info", {"fields": ("failure_reason",), "classes": ("collapse",)}),
        ("Metadata", {"fields": ("metadata", "version"), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    def payout_display(self, obj: Payout) -> str:
        return _money(obj.payout_amount_cents, obj.currency)

    payout_display.short_description = "Payout"

    def _report(self, request, results, verb: str) -> None:
        succeeded = [r for r in results if r.success]
        failed = [r for r in results if not r.success]
        if succeeded:
            self.message_user(request, f"{len(succeeded)} payout(s) {verb}.", messages.SUCCESS)
        for result in failed:
            self.message_user(request, f"{result.payout_id}: {result.error}", messages.WARNING)

    @admin.action(description="Re-queue selected failed payouts")
    def requeue_selected(self, request, queryset):
        results = PayoutService.bulk_requeue(
            queryset.values_list("id", flat=True), actor=request.user
        )
        self._report(request, results, "re-queued")

    @admin.action(description="Cancel selected payouts")
    def cancel_selected(self, request, queryset):
        results = PayoutService.bulk_cancel(
            queryset.values_list("id", flat=True),
            actor=request.user,
            reason="Cancelled from admin",
        )
        self._report(request, results, "cancelled")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payouts (audit trail)."""
        return False
