from django.db import models


class LiveManager(models.Manager):
    """Default manager hiding soft-deleted rows (``is_deleted=True``)."""

    def get_queryset(self):
        return super().get_queryset().filter(is_deleted=False)
