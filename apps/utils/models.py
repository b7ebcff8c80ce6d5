from django.db import models
import uuid

from apps.utils.exceptions import ImmutableRecordError


class TimestampedModel(models.Model):
    """
    Common timestamps for all models
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class AppendOnlyModel(TimestampedModel):
    """
    Audit rows: written once, never updated or deleted.
    """

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(
                f"{self.__class__.__name__} records are append-only."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(
            f"{self.__class__.__name__} records cannot be deleted."
        )
