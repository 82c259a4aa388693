"""
Core models for Teamflow.
Provides BaseModel with prefixed string primary keys and timestamp fields.
"""
from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model with a ``<Prefix>-NNNNN`` primary key and timestamps.

    Subclasses set ``ID_PREFIX`` and are created through
    ``IdentifierAllocator.create`` so the key is allocated on insert.
    Records reference each other by these identifiers only; there are no
    foreign keys, and deleting a record never touches another collection.
    """
    ID_PREFIX = None

    id = models.CharField(
        primary_key=True,
        max_length=32,
        editable=False,
        help_text="Identifier such as Team-00003"
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when the record was created"
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when the record was last updated"
    )

    class Meta:
        abstract = True
        ordering = ['id']

    def __str__(self):
        return self.id


class IdentifierSequence(models.Model):
    """
    Highest number ever issued per identifier prefix.

    Allocation never goes below this mark, so deleting the newest record of
    a class does not hand its identifier to the next one.
    """

    prefix = models.CharField(max_length=16, primary_key=True)
    last_value = models.PositiveBigIntegerField(default=0)

    class Meta:
        db_table = 'identifier_sequences'

    def __str__(self):
        return f"{self.prefix}:{self.last_value}"
