"""
Human-readable sequential identifiers.

Every record gets an identifier of the form ``<Prefix>-<N>`` with N
zero-padded to five digits (``User-00001``, ``Team-00003``, ``AP-00007``).
Models declare their prefix with an ``ID_PREFIX`` class attribute.

Allocation is read-max-then-insert. Two concurrent writers can read the
same maximum; the primary key constraint rejects the second insert, which
then re-reads and tries the next number. A per-prefix high-water mark keeps
numbers from being issued again after the newest record is deleted.
"""
import logging
import re
from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models.functions import Length

from apps.core.exceptions import IdentifierAllocationError
from apps.core.models import IdentifierSequence

logger = logging.getLogger(__name__)


class IdentifierAllocator:
    """Allocates ``<Prefix>-NNNNN`` identifiers and inserts records under them."""

    WIDTH = 5

    @classmethod
    def prefix_for(cls, model) -> str:
        return model.ID_PREFIX

    @classmethod
    def format_identifier(cls, prefix: str, number: int) -> str:
        return f"{prefix}-{number:0{cls.WIDTH}d}"

    @classmethod
    def parse_suffix(cls, prefix: str, identifier) -> int:
        """
        Return the numeric part of ``identifier``.

        Anything that does not look like ``<prefix>-<digits>`` counts as 0.
        """
        if not identifier:
            return 0
        match = re.fullmatch(rf"{re.escape(prefix)}-(\d+)", identifier)
        return int(match.group(1)) if match else 0

    @classmethod
    def _read_max(cls, model):
        """Return the highest existing identifier for ``model``, or None."""
        prefix = cls.prefix_for(model)
        # Longest first so that numbers past 99999 still sort above shorter ones
        return (
            model.objects.filter(pk__startswith=f"{prefix}-")
            .annotate(id_length=Length('pk'))
            .order_by('-id_length', '-pk')
            .values_list('pk', flat=True)
            .first()
        )

    @classmethod
    def _high_water(cls, prefix: str) -> int:
        return (
            IdentifierSequence.objects.filter(prefix=prefix)
            .values_list('last_value', flat=True)
            .first()
        ) or 0

    @classmethod
    def _advance_high_water(cls, prefix: str, number: int):
        _, created = IdentifierSequence.objects.get_or_create(
            prefix=prefix, defaults={'last_value': number}
        )
        if not created:
            IdentifierSequence.objects.filter(prefix=prefix, last_value__lt=number).update(last_value=number)

    @classmethod
    def allocate(cls, model) -> str:
        """Return the next identifier for ``model`` without inserting anything."""
        prefix = cls.prefix_for(model)
        current = max(cls.parse_suffix(prefix, cls._read_max(model)), cls._high_water(prefix))
        return cls.format_identifier(prefix, current + 1)

    @classmethod
    def create(cls, model, **fields):
        """
        Allocate an identifier and insert a new ``model`` row under it.

        The insert is forced, so an identifier taken in the meantime raises
        IntegrityError instead of overwriting the other row. Such collisions
        are retried up to IDENTIFIER_MAX_RETRIES times; integrity errors on
        any other column propagate unchanged.

        Raises:
            IdentifierAllocationError: If every attempt collided
        """
        max_retries = getattr(settings, 'IDENTIFIER_MAX_RETRIES', 5)
        prefix = cls.prefix_for(model)
        identifier = None

        for attempt in range(1, max_retries + 1):
            identifier = cls.allocate(model)
            try:
                with transaction.atomic():
                    record = model.objects.create(pk=identifier, **fields)
                    cls._advance_high_water(prefix, cls.parse_suffix(prefix, identifier))
                return record
            except IntegrityError:
                if not model.objects.filter(pk=identifier).exists():
                    raise
                logger.warning(
                    f"Identifier collision on {identifier}, retrying",
                    extra={
                        'model': model.__name__,
                        'identifier': identifier,
                        'attempt': attempt,
                    }
                )

        logger.error(
            f"Identifier allocation exhausted for {model.__name__}",
            extra={'model': model.__name__, 'last_identifier': identifier, 'attempts': max_retries}
        )
        raise IdentifierAllocationError(
            f"Could not allocate a {model.__name__} identifier. Please retry.",
            details={'attempts': max_retries},
        )
