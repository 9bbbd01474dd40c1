"""
Abstract field mixins shared by the marketplace models.

List mixins before BaseModel:

    class EscrowPayment(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
        objects = EscrowPaymentManager()
        all_objects = models.Manager()
"""

from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class UUIDPrimaryKeyMixin(models.Model):
    """Random UUID keys; booking, escrow and payout ids appear in URLs and gateway references."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True


class SoftDeleteMixin(models.Model):
    """
    Flag-based deletion for financial records.

    A soft-deleted row keeps its history and is hidden by SoftDeleteManager.
    Models may define on_soft_delete() and on_restore() hooks; both run
    before the flag changes.
    """

    SOFT_DELETE_FIELDS = ["is_deleted", "deleted_at", "updated_at"]

    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        abstract = True

    def _set_deleted(self, deleted: bool, hook: str) -> None:
        if self.is_deleted == deleted:
            return
        callback = getattr(self, hook, None)
        if callback is not None:
            callback()
        self.is_deleted = deleted
        self.deleted_at = timezone.now() if deleted else None
        self.save(update_fields=self.SOFT_DELETE_FIELDS)

    def soft_delete(self) -> None:
        """Idempotent; an already deleted record keeps its original deleted_at."""
        self._set_deleted(True, "on_soft_delete")

    def restore(self) -> None:
        self._set_deleted(False, "on_restore")

    def hard_delete(self) -> None:
        super().delete()
