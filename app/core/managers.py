"""
Soft delete query support.

Records flagged with is_deleted stay in the table for auditing. The default
manager hides them; pair it with a plain all_objects manager:

    class EscrowPayment(SoftDeleteMixin, BaseModel):
        objects = EscrowPaymentManager()
        all_objects = models.Manager()

Subclass SoftDeleteManager and point queryset_class at a SoftDeleteQuerySet
subclass to expose model-specific filters.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class SoftDeleteQuerySet(models.QuerySet):
    """QuerySet whose delete() flags rows instead of removing them."""

    def _call_hook(self, hook: str, is_deleted: bool) -> None:
        for instance in self.filter(is_deleted=is_deleted):
            callback = getattr(instance, hook, None)
            if callback is not None:
                callback()

    def delete(self) -> tuple[int, dict[str, int]]:
        """
        Flag every live row as deleted.

        Returns the same (count, {label: count}) shape as QuerySet.delete().
        """
        self._call_hook("on_soft_delete", is_deleted=False)
        count = self.filter(is_deleted=False).update(
            is_deleted=True, deleted_at=timezone.now()
        )
        return count, {self.model._meta.label: count}

    def hard_delete(self) -> tuple[int, dict[str, int]]:
        return super().delete()

    def restore(self) -> int:
        self._call_hook("on_restore", is_deleted=True)
        return self.filter(is_deleted=True).update(is_deleted=False, deleted_at=None)

    def deleted(self) -> SoftDeleteQuerySet:
        return self.filter(is_deleted=True)

    def active(self) -> SoftDeleteQuerySet:
        return self.filter(is_deleted=False)


class SoftDeleteManager(models.Manager):
    queryset_class = SoftDeleteQuerySet

    def with_deleted(self) -> SoftDeleteQuerySet:
        return self.queryset_class(self.model, using=self._db)

    def get_queryset(self) -> SoftDeleteQuerySet:
        return self.with_deleted().active()

    def deleted(self) -> SoftDeleteQuerySet:
        return self.with_deleted().deleted()
