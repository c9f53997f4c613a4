import typing as t
import uuid

from django.db import models


class TimeStampedModel(models.Model):
    """UUID-keyed model with creation and modification timestamps.

    Every save runs model validation, so invalid rows surface as ``ValidationError``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        abstract = True

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Validate, then save.

        A save restricted by ``update_fields`` only validates those fields and skips the
        uniqueness and constraint checks, which already ran when the row was first written.
        """
        update_fields = kwargs.get("update_fields")
        if update_fields is None:
            self.full_clean()
        else:
            updated = set(update_fields)
            self.full_clean(
                exclude=[f.name for f in self._meta.concrete_fields if f.name not in updated],
                validate_unique=False,
                validate_constraints=False,
            )
        super().save(*args, **kwargs)
